from __future__ import annotations

from typing import AsyncIterator, Optional

from google import genai
from google.genai import types

from agentic_cli.adapters.gemini import GeminiRequestAdapter
from agentic_cli.config import ProviderConfig
from agentic_cli.provider import ProviderType
from agentic_cli.types.chat import ProviderRequest

from .base import BaseProvider


class GoogleProvider(BaseProvider):
    """
    Google Gemini provider using the native ``google-genai`` SDK.

    Authenticates with an API key, or through Vertex AI when the config sets
    ``vertex_ai`` together with a project and location.
    """

    provider_type = ProviderType.GOOGLE
    default_model = "gemini-2.5-flash"
    client_class = genai.Client
    supports_top_k = True

    _adapter = GeminiRequestAdapter()

    @property
    def adapter(self) -> GeminiRequestAdapter:
        return self._adapter

    @staticmethod
    def _uses_vertex(config: ProviderConfig) -> bool:
        return bool(config.vertex_ai and config.vertex_project and config.vertex_location)

    def _requires_api_key(self, config: ProviderConfig) -> bool:
        return not self._uses_vertex(config)

    def _build_client(self, config: ProviderConfig, api_key: Optional[str]) -> genai.Client:
        http_options = types.HttpOptions(
            base_url=config.base_url,
            timeout=int(config.timeout * 1000),  # milliseconds
            retry_options=types.HttpRetryOptions(attempts=config.max_retries + 1),
        )
        if self._uses_vertex(config):
            return genai.Client(
                vertexai=True,
                project=config.vertex_project,
                location=config.vertex_location,
                http_options=http_options,
            )
        return genai.Client(api_key=api_key, http_options=http_options)

    async def _chat_impl(
        self, request: ProviderRequest, model: str
    ) -> types.GenerateContentResponse:
        args = self.adapter.to_provider(request, model)
        return await self._client.aio.models.generate_content(**args)

    async def _stream_impl(
        self, request: ProviderRequest, model: str
    ) -> AsyncIterator[types.GenerateContentResponse]:
        args = self.adapter.to_provider(request, model)
        async for chunk in await self._client.aio.models.generate_content_stream(**args):
            yield chunk

    async def _close_client(self) -> None:
        await self._client.aio.aclose()

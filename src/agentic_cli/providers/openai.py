from __future__ import annotations

from typing import Any, AsyncIterator, Optional

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion, ChatCompletionChunk

from agentic_cli.adapters.openai import OpenAIRequestAdapter
from agentic_cli.config import ProviderConfig
from agentic_cli.provider import ProviderType
from agentic_cli.types.chat import ProviderRequest

from .base import BaseProvider


class OpenAIProvider(BaseProvider):
    """
    OpenAI provider (async‑only), speaking the chat-completions API.

    Use ``OpenAIProvider.from_client`` when you already have an ``AsyncOpenAI`` instance.
    """

    provider_type = ProviderType.OPENAI
    default_model = "gpt-4o"
    client_class = AsyncOpenAI
    default_base_url: Optional[str] = None

    _adapter = OpenAIRequestAdapter()

    @property
    def adapter(self) -> OpenAIRequestAdapter:
        return self._adapter

    def _build_client(self, config: ProviderConfig, api_key: Optional[str]) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=api_key,
            base_url=config.base_url or self.default_base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    async def _chat_impl(self, request: ProviderRequest, model: str) -> ChatCompletion:
        args = self.adapter.to_provider(request, model)
        return await self._client.chat.completions.create(**args)

    async def _stream_impl(
        self, request: ProviderRequest, model: str
    ) -> AsyncIterator[ChatCompletionChunk]:
        args: dict[str, Any] = self.adapter.to_provider(request, model)
        stream = await self._client.chat.completions.create(stream=True, **args)
        async for chunk in stream:
            yield chunk

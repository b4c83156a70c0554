from __future__ import annotations

from typing import Any, AsyncIterator, Optional

from anthropic import AsyncAnthropic
from anthropic.types import Message

from agentic_cli.adapters.anthropic import AnthropicRequestAdapter
from agentic_cli.config import ProviderConfig
from agentic_cli.provider import ProviderType
from agentic_cli.types.chat import ProviderRequest

from .base import BaseProvider


class AnthropicProvider(BaseProvider):
    """
    Anthropic provider (async‑only), speaking the Messages API.

    Use ``AnthropicProvider.from_client`` when you already have an ``AsyncAnthropic`` instance.
    """

    provider_type = ProviderType.ANTHROPIC
    default_model = "claude-sonnet-4-20250514"
    client_class = AsyncAnthropic
    supports_top_k = True

    _adapter = AnthropicRequestAdapter()

    @property
    def adapter(self) -> AnthropicRequestAdapter:
        return self._adapter

    def _build_client(self, config: ProviderConfig, api_key: Optional[str]) -> AsyncAnthropic:
        return AsyncAnthropic(
            api_key=api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    async def _chat_impl(self, request: ProviderRequest, model: str) -> Message:
        args = self.adapter.to_provider(request, model)
        return await self._client.messages.create(**args)

    async def _stream_impl(self, request: ProviderRequest, model: str) -> AsyncIterator[Any]:
        """Handle Anthropic-specific streaming with context manager."""
        args = self.adapter.to_provider(request, model)
        async with self._client.messages.stream(**args) as stream:
            async for event in stream:
                yield event

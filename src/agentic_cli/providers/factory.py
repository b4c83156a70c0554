from __future__ import annotations

import logging
import threading
from typing import Optional, Type

from agentic_cli.config import ProviderConfig
from agentic_cli.credentials import CredentialStore, SecretSource
from agentic_cli.errors import UnsupportedProviderError
from agentic_cli.provider import ProviderType

from .anthropic import AnthropicProvider
from .base import BaseProvider
from .google import GoogleProvider
from .grok import GrokProvider
from .openai import OpenAIProvider

__all__ = ["ProviderFactory", "create_provider_factory", "BUILTIN_PROVIDERS"]

# map ProviderType to its implementation
BUILTIN_PROVIDERS: dict[ProviderType, Type[BaseProvider]] = {
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.ANTHROPIC: AnthropicProvider,
    ProviderType.GOOGLE: GoogleProvider,
    ProviderType.GROK: GrokProvider,
}


class ProviderFactory:
    """
    Creates provider instances and caches them per (type, instance name).

    Instances come back unconfigured; call ``configure_provider`` (or the
    provider's own ``configure``) before sending requests.
    """

    def __init__(
        self,
        credentials: Optional[SecretSource] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.credentials = credentials
        self.logger = logger or logging.getLogger(__name__)
        self._registry: dict[str, Type[BaseProvider]] = {}
        self._instances: dict[tuple[str, str], BaseProvider] = {}
        self._lock = threading.Lock()

    def register_provider(self, provider_type: ProviderType | str, provider_cls: Type[BaseProvider]) -> None:
        with self._lock:
            self._registry[str(provider_type)] = provider_cls

    def has_provider_type(self, provider_type: ProviderType | str) -> bool:
        return str(provider_type) in self._registry

    def get_provider(
        self, provider_type: ProviderType | str, instance_name: str = "default"
    ) -> BaseProvider:
        key = (str(provider_type), instance_name)
        with self._lock:
            cached = self._instances.get(key)
            if cached is not None:
                return cached
            try:
                provider_cls = self._registry[str(provider_type)]
            except KeyError:
                raise UnsupportedProviderError(provider_type) from None
            provider = provider_cls(
                credentials=self.credentials,
                logger=self.logger,
                name=f"{provider_cls.__name__}:{instance_name}",
            )
            self._instances[key] = provider
        return provider

    async def configure_provider(
        self,
        provider_type: ProviderType | str,
        config: ProviderConfig,
        instance_name: str | None = None,
    ) -> BaseProvider:
        """Fetch (or create) the provider instance and configure it."""
        provider = self.get_provider(provider_type, instance_name or config.instance_name)
        await provider.configure(config)
        return provider

    async def aclose(self) -> None:
        with self._lock:
            instances = list(self._instances.values())
            self._instances.clear()
        for provider in instances:
            await provider.aclose()


def create_provider_factory(
    credentials: Optional[SecretSource] = None,
    *,
    logger: Optional[logging.Logger] = None,
) -> ProviderFactory:
    """Build a factory with every built-in provider registered."""
    factory = ProviderFactory(
        credentials if credentials is not None else CredentialStore(logger=logger),
        logger=logger,
    )
    for provider_type, provider_cls in BUILTIN_PROVIDERS.items():
        factory.register_provider(provider_type, provider_cls)
    return factory

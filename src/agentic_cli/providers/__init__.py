from .anthropic import AnthropicProvider
from .base import BaseProvider
from .factory import BUILTIN_PROVIDERS, ProviderFactory, create_provider_factory
from .google import GoogleProvider
from .grok import GrokProvider
from .openai import OpenAIProvider

__all__ = [
    "BaseProvider",
    "OpenAIProvider",
    "GrokProvider",
    "AnthropicProvider",
    "GoogleProvider",
    "ProviderFactory",
    "create_provider_factory",
    "BUILTIN_PROVIDERS",
]

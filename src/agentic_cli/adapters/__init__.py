"""Vendor request/response adapters: pure functions of a ProviderRequest or a raw SDK response."""

from .openai import OpenAIRequestAdapter
from .anthropic import AnthropicRequestAdapter, ephemeral
from .gemini import GeminiRequestAdapter, to_gemini_schema

__all__ = [
    "OpenAIRequestAdapter",
    "AnthropicRequestAdapter",
    "GeminiRequestAdapter",
    "ephemeral",
    "to_gemini_schema",
]

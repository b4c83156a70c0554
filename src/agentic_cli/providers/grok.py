from __future__ import annotations

from agentic_cli.provider import ProviderType

from .openai import OpenAIProvider

_DEFAULT_GROK_BASE_URL = "https://api.x.ai/v1"


class GrokProvider(OpenAIProvider):
    """
    xAI Grok provider via its OpenAI-compatible endpoint.
    """

    provider_type = ProviderType.GROK
    default_model = "grok-3"
    default_base_url = _DEFAULT_GROK_BASE_URL

from __future__ import annotations

import os
from enum import StrEnum
from typing import Final

from dotenv import load_dotenv

load_dotenv()


class ProviderType(StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    GROK = "grok"


# First variable found wins
_ENV_VARS: Final[dict[ProviderType, tuple[str, ...]]] = {
    ProviderType.OPENAI: ("OPENAI_API_KEY",),
    ProviderType.ANTHROPIC: ("ANTHROPIC_API_KEY",),
    ProviderType.GOOGLE: ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    ProviderType.GROK: ("XAI_API_KEY", "GROK_API_KEY"),
}


def env_var_names(provider: ProviderType | str) -> tuple[str, ...]:
    """Return the environment variables consulted for *provider*."""
    try:
        return _ENV_VARS[ProviderType(provider)]
    except ValueError:
        return ()


def get_env_api_key(provider: ProviderType | str) -> str | None:
    """Return the API key for *provider* from the environment, or None."""
    for env_var in env_var_names(provider):
        value = os.environ.get(env_var)
        if value:
            return value
    return None


__all__ = ["ProviderType", "env_var_names", "get_env_api_key"]

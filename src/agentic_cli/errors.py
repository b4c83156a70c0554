"""
Exceptions raised by agentic-cli and translation of noisy vendor SDK
exceptions into a compact ``ErrorInfo``.

Provider calls never raise for transport or API problems: the provider turns
the exception into a failed ``ProviderResponse`` through ``classify_error``.
Only configuration problems and iteration exhaustion are raised.
"""

from __future__ import annotations

import logging
from typing import Any, Final, Optional, Type

import anthropic
import openai
from google.genai import errors as genai_errors

from agentic_cli.types.tool import ErrorInfo

__all__ = [
    "AgenticCLIError",
    "ConfigurationError",
    "UnsupportedProviderError",
    "MaxIterationsExceededError",
    "classify_error",
]


class AgenticCLIError(RuntimeError):
    """Base class for every error the package raises on purpose."""


class ConfigurationError(AgenticCLIError):
    """Missing API key, missing provider settings, or an unconfigured provider."""


class UnsupportedProviderError(ConfigurationError, ValueError):
    """Raised for a provider type nobody registered."""

    def __init__(self, provider_type: Any) -> None:
        super().__init__(f"Unsupported provider type: {provider_type!s}")
        self.provider_type = provider_type


class MaxIterationsExceededError(AgenticCLIError):
    """The model still requested tools when the iteration cap was reached.

    Attributes:
        max_iterations: The cap that was hit.
        last_response: The final provider response, still carrying tool calls.
        trace: Per-iteration trace collected so far.
    """

    def __init__(
        self,
        max_iterations: int,
        last_response: Any = None,
        trace: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            f"Tool loop exceeded maximum iterations ({max_iterations}) "
            "while the model was still requesting tools"
        )
        self.max_iterations = max_iterations
        self.last_response = last_response
        self.trace = trace or {}


RATE_LIMIT_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.RateLimitError,
    anthropic.RateLimitError,
)

CONN_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIConnectionError,
    anthropic.APIConnectionError,
    TimeoutError,
    ConnectionError,
)

STATUS_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIStatusError,
    anthropic.APIStatusError,
)

API_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIError,
    anthropic.APIError,
)


def _status_of(exc: Exception) -> Any:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "code", None)
    return status


def classify_error(
    exc: BaseException,
    logger: Optional[logging.Logger] = None,
) -> ErrorInfo:
    """
    Classify a vendor exception and return an ``ErrorInfo`` with a short,
    readable message and a stable code.

    Args:
        exc: The caught exception.
        logger: Logger for recording the error.

    Returns:
        ErrorInfo whose code is ``rate_limit``, ``connection_error``,
        ``api_error`` or the exception class name.
    """
    log = logger or logging.getLogger(__name__)
    error_type = type(exc).__name__
    error_message = str(exc)

    if isinstance(exc, RATE_LIMIT_ERRORS) or (
        isinstance(exc, genai_errors.APIError) and exc.code == 429
    ):
        msg = f"Rate limit exceeded, please retry later: {error_message}"
        log.error(msg)
        return ErrorInfo(msg, "rate_limit", {"status": _status_of(exc)})

    if isinstance(exc, CONN_ERRORS):
        msg = f"Connection error, unable to reach the LLM provider: {error_message}"
        log.error(msg)
        return ErrorInfo(msg, "connection_error")

    if isinstance(exc, STATUS_ERRORS + (genai_errors.APIError,)):
        status = _status_of(exc)
        msg = f"API error ({status}): {error_message}"
        log.error(msg)
        return ErrorInfo(msg, "api_error", {"status": status})

    if isinstance(exc, API_ERRORS):
        msg = f"API error: {error_message}"
        log.error(msg)
        return ErrorInfo(msg, "api_error")

    # Fallback for everything else
    msg = f"{error_type}: {error_message}"
    log.error(msg, exc_info=exc)
    return ErrorInfo(msg, error_type)

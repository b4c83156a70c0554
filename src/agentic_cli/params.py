"""
Generation parameters for a ProviderRequest.

Callers pass a flat dict. Keys that name a ``ProviderRequest`` field are kept
as they are; any other non-None key is vendor specific and is moved into
``extra``, which the adapters forward untouched (``top_p``, ``top_k``,
``reasoning_effort``, ``parallel_tool_calls`` ...). An explicit ``extra``
dict from the caller takes precedence over moved keys.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from agentic_cli.types.chat import ChatMessage, ProviderRequest

__all__ = ["STANDARD_KEYS", "normalize_params", "build_request"]

STANDARD_KEYS = frozenset(
    {"model", "temperature", "max_tokens", "stream", "tools", "tool_choice", "n", "stop"}
)


def normalize_params(params: Optional[dict[str, Any]]) -> dict[str, Any]:
    """
    Split *params* into request fields plus an ``extra`` dict.

    >>> normalize_params({"temperature": 0.2, "reasoning_effort": "high"})
    {'temperature': 0.2, 'stream': False, 'extra': {'reasoning_effort': 'high'}}
    """
    if params is None:
        return {"stream": False, "extra": {}}
    if not isinstance(params, dict):
        raise TypeError(f"params must be a dict, got {type(params).__name__}")

    explicit_extra = params.get("extra") or {}
    if not isinstance(explicit_extra, dict):
        raise TypeError("params['extra'] must be a dict")

    fields = {k: v for k, v in params.items() if k in STANDARD_KEYS}
    moved = {
        k: v
        for k, v in params.items()
        if k != "extra" and k not in STANDARD_KEYS and v is not None
    }
    fields.setdefault("stream", False)
    fields["extra"] = {**moved, **explicit_extra}
    return fields


def build_request(
    messages: Sequence[ChatMessage], params: Optional[dict[str, Any]] = None
) -> ProviderRequest:
    """Build a ``ProviderRequest`` that owns its own copy of *messages*."""
    return ProviderRequest(messages=list(messages), **normalize_params(params))

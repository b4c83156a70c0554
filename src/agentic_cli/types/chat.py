"""Canonical chat types shared by every provider."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from typing import Any, Optional, Sequence, Union

from agentic_cli.types.tool import ErrorInfo, Tool, ToolCall, ToolCallOutput

# Type alias for chat messages
ChatMessage = dict[str, Any]

ToolChoice = Union[str, dict[str, Any]]


def assistant_message(
    content: str | None, tool_calls: Sequence[ToolCall] | None = None
) -> ChatMessage:
    """Build the assistant turn that requested *tool_calls*."""
    message: ChatMessage = {"role": "assistant", "content": content or ""}
    if tool_calls:
        message["tool_calls"] = list(tool_calls)
    return message


def tool_message(output: ToolCallOutput, name: str | None = None) -> ChatMessage:
    """Build the tool turn answering the call identified by ``output.call_id``."""
    message: ChatMessage = {
        "role": "tool",
        "tool_call_id": output.call_id,
        "content": output.output,
    }
    if name:
        message["name"] = name
    return message


def coerce_tool_call(raw: ToolCall | dict[str, Any]) -> ToolCall:
    """Accept either a ToolCall or its OpenAI-shaped dict form."""
    if isinstance(raw, ToolCall):
        return raw
    function = raw.get("function") or {}
    arguments = raw.get("arguments", function.get("arguments", "{}"))
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return ToolCall(
        id=raw.get("id") or raw.get("call_id") or "",
        name=raw.get("name") or function.get("name", ""),
        arguments=arguments,
    )


@dataclass(slots=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            self.prompt_tokens + other.prompt_tokens,
            self.completion_tokens + other.completion_tokens,
            self.total_tokens + other.total_tokens,
        )


@dataclass
class ProviderRequest:
    """Provider‑agnostic request. Built fresh for every orchestration call."""

    messages: list[ChatMessage] = field(default_factory=list)
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    tools: Optional[list[Tool]] = None
    tool_choice: Optional[ToolChoice] = None
    n: Optional[int] = None
    stream: bool = False
    stop: Optional[Union[str, list[str]]] = None

    # Provider-specific parameters, forwarded as-is
    extra: dict[str, Any] = field(default_factory=dict)

    def copy(self, **kwargs: Any) -> "ProviderRequest":
        """
        Create a copy of this request with optional overrides.

        The message list is copied so appending to the copy never touches
        the original conversation.
        """
        kwargs.setdefault("messages", list(self.messages))
        return replace(self, **kwargs)

    def with_tool_outputs(
        self, outputs: Sequence[ToolCallOutput], **kwargs: Any
    ) -> "ToolResultsRequest":
        values = {f.name: getattr(self, f.name) for f in fields(ProviderRequest)}
        values["messages"] = list(self.messages)
        values.update(kwargs)
        return ToolResultsRequest(**values, tool_outputs=list(outputs))


@dataclass
class ToolResultsRequest(ProviderRequest):
    """A continuation request carrying the outputs of the latest tool calls."""

    tool_outputs: list[ToolCallOutput] = field(default_factory=list)


@dataclass
class ProviderResponse:
    """Unified response object for all LLM providers."""

    success: bool = True
    content: str = ""
    tool_calls: Optional[list[ToolCall]] = None
    usage: Optional[Usage] = None
    error: Optional[ErrorInfo] = None
    finish_reason: Optional[str] = None
    id: Optional[str] = None
    model: Optional[str] = None
    raw: Any = field(default=None, repr=False)
    trace_info: Optional[dict[str, Any]] = None
    max_iterations_reached: bool = False

    @classmethod
    def failure(cls, error: ErrorInfo, raw: Any = None) -> "ProviderResponse":
        return cls(success=False, error=error, raw=raw)

    @property
    def is_error(self) -> bool:
        return not self.success

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def raise_for_error(self) -> None:
        if self.is_error:
            message = self.error.message if self.error else "unknown provider error"
            raise RuntimeError(message)

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        if self.is_error:
            return f"{self.__class__.__name__}(error={self.error!r})"
        preview = self.content[:75] + "..." if len(self.content) > 75 else self.content
        calls = len(self.tool_calls or [])
        return (
            f"{self.__class__.__name__}(content={preview!r}, tool_calls={calls}, "
            f"finish_reason={self.finish_reason!r})"
        )


def tool_choice_name(choice: ToolChoice | None) -> Optional[str]:
    """Return the forced function name of *choice*, if it names one."""
    if not isinstance(choice, dict):
        return None
    function = choice.get("function")
    if isinstance(function, dict) and function.get("name"):
        return function["name"]
    return choice.get("name")

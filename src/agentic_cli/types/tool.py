"""
Provider‑neutral dataclasses for client‑side tool use.

They are intentionally minimal: everything provider‑specific lives in adapters.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

__all__ = [
    "Tool",
    "ToolCall",
    "ToolCallOutput",
    "ErrorInfo",
    "ToolExecutionResult",
]


@dataclass(frozen=True, slots=True)
class Tool:
    """A local capability the model may ask to invoke."""
    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    strict: Optional[bool] = None
    # Eligible for concurrent execution when the orchestrator allows it
    side_effect_free: bool = False
    type: str = "function"


@dataclass(slots=True)
class ToolCall:
    """A model‑agnostic request emitted by the LLM to call a local tool."""
    id: str
    name: str
    arguments: str = "{}"       # JSON text, opaque until parsed

    def parse_arguments(self) -> dict[str, Any]:
        """Decode the JSON arguments. Empty text decodes to an empty dict."""
        if not self.arguments or not self.arguments.strip():
            return {}
        parsed = json.loads(self.arguments)
        if not isinstance(parsed, dict):
            raise ValueError(
                f"Tool arguments must be a JSON object, got {type(parsed).__name__}"
            )
        return parsed


@dataclass(slots=True)
class ToolCallOutput:
    """Payload to send back to the LLM after the tool finished running."""
    call_id: str                # must match the request id
    output: str
    type: str = "function_call_output"


@dataclass(slots=True)
class ErrorInfo:
    message: str
    code: Optional[str] = None
    details: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            k: v
            for k, v in (
                ("message", self.message),
                ("code", self.code),
                ("details", self.details),
            )
            if v is not None
        }


@dataclass(slots=True)
class ToolExecutionResult:
    """Outcome of a single tool invocation. Failures are values, not exceptions."""
    success: bool
    output: Optional[str] = None
    error: Optional[ErrorInfo] = None

    @classmethod
    def ok(cls, output: str) -> "ToolExecutionResult":
        return cls(success=True, output=output)

    @classmethod
    def failure(
        cls, message: str, code: str | None = None, details: Any = None
    ) -> "ToolExecutionResult":
        return cls(success=False, error=ErrorInfo(message, code, details))

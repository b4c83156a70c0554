from .chat import (
    ChatMessage,
    ProviderRequest,
    ProviderResponse,
    ToolChoice,
    ToolResultsRequest,
    Usage,
    assistant_message,
    coerce_tool_call,
    tool_choice_name,
    tool_message,
)
from .tool import ErrorInfo, Tool, ToolCall, ToolCallOutput, ToolExecutionResult

__all__ = [
    "ChatMessage",
    "ProviderRequest",
    "ProviderResponse",
    "ToolChoice",
    "ToolResultsRequest",
    "Usage",
    "assistant_message",
    "coerce_tool_call",
    "tool_choice_name",
    "tool_message",
    "ErrorInfo",
    "Tool",
    "ToolCall",
    "ToolCallOutput",
    "ToolExecutionResult",
]

"""OpenAI adapter for pure request/response transformations.

Also used for Grok, whose API speaks the same chat-completions dialect.
"""

from __future__ import annotations

from typing import Any, Sequence

from openai.types.chat import ChatCompletion, ChatCompletionChunk

from agentic_cli.types.chat import (
    ChatMessage,
    ProviderRequest,
    ProviderResponse,
    Usage,
    coerce_tool_call,
    tool_choice_name,
)
from agentic_cli.types.tool import Tool, ToolCall, ToolCallOutput


class OpenAIRequestAdapter:
    """Adapter for converting between generic format and OpenAI format."""

    def build_messages(self, messages: Sequence[ChatMessage]) -> list[dict[str, Any]]:
        """Convert generic messages to chat-completions messages."""
        openai_messages: list[dict[str, Any]] = []
        for msg in messages:
            if msg["role"] == "tool":
                openai_messages.append(
                    self.tool_result_message(
                        ToolCallOutput(call_id=msg["tool_call_id"], output=msg.get("content") or "")
                    )
                )
                continue

            openai_msg: dict[str, Any] = {"role": msg["role"]}

            if msg.get("content") is not None:
                openai_msg["content"] = msg["content"]

            if msg.get("tool_calls"):
                openai_msg["tool_calls"] = [
                    self._tool_call_dict(coerce_tool_call(tc)) for tc in msg["tool_calls"]
                ]
                # content may be null when tool_calls is present
                if not openai_msg.get("content"):
                    openai_msg["content"] = None

            if msg.get("name"):
                openai_msg["name"] = msg["name"]

            if "content" not in openai_msg and not openai_msg.get("tool_calls"):
                openai_msg["content"] = ""

            openai_messages.append(openai_msg)
        return openai_messages

    @staticmethod
    def _tool_call_dict(call: ToolCall) -> dict[str, Any]:
        return {
            "id": call.id,
            "type": "function",
            "function": {"name": call.name, "arguments": call.arguments or "{}"},
        }

    @staticmethod
    def build_tools(tools: Sequence[Tool]) -> list[dict[str, Any]]:
        out = []
        for tool in tools:
            function: dict[str, Any] = {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters or {"type": "object", "properties": {}},
            }
            if tool.strict is not None:
                function["strict"] = tool.strict
            out.append({"type": "function", "function": function})
        return out

    @staticmethod
    def build_tool_choice(choice: Any) -> Any:
        name = tool_choice_name(choice)
        if name:
            return {"type": "function", "function": {"name": name}}
        return choice

    def to_provider(self, request: ProviderRequest, model: str) -> dict[str, Any]:
        """Convert a ProviderRequest to ``chat.completions.create`` kwargs."""
        args: dict[str, Any] = {
            "model": model,
            "messages": self.build_messages(request.messages),
        }

        if request.temperature is not None:
            args["temperature"] = request.temperature
        if request.max_tokens is not None:
            # Reasoning model families reject max_tokens
            key = "max_completion_tokens" if self._requires_max_completion_tokens(model) else "max_tokens"
            args[key] = request.max_tokens
        if request.n is not None:
            args["n"] = request.n
        if request.stop is not None:
            args["stop"] = request.stop
        if request.tools:
            args["tools"] = self.build_tools(request.tools)
            if request.tool_choice is not None:
                args["tool_choice"] = self.build_tool_choice(request.tool_choice)

        for k, v in request.extra.items():
            args.setdefault(k, v)
        return args

    def _requires_max_completion_tokens(self, model: str) -> bool:
        """Check if model requires max_completion_tokens instead of max_tokens."""
        newer_models = {
            "gpt-5",  # GPT-5 series
            "o1",  # O1 series models
            "o3",  # O3 series models
            "o4",  # O4 series models
        }
        return any(model.startswith(prefix) for prefix in newer_models)

    def from_provider(self, raw: ChatCompletion) -> ProviderResponse:
        """Convert an OpenAI completion to a ProviderResponse."""
        if not raw.choices:
            raise ValueError("OpenAI response contained no choices")

        choice = raw.choices[0]
        message = choice.message
        tool_calls: list[ToolCall] = []
        for tc in message.tool_calls or []:
            function = getattr(tc, "function", None)
            if function is None:  # custom (non-function) tool calls are not used
                continue
            tool_calls.append(
                ToolCall(id=tc.id, name=function.name, arguments=function.arguments or "{}")
            )

        usage = None
        if raw.usage is not None:
            usage = Usage(
                prompt_tokens=raw.usage.prompt_tokens or 0,
                completion_tokens=raw.usage.completion_tokens or 0,
                total_tokens=raw.usage.total_tokens or 0,
            )

        return ProviderResponse(
            content=message.content or "",
            tool_calls=tool_calls or None,
            usage=usage,
            finish_reason=choice.finish_reason,
            id=raw.id,
            model=raw.model,
            raw=raw,
        )

    def stream_text(self, raw_chunk: ChatCompletionChunk) -> ProviderResponse:
        """Extract content from streaming chunk."""
        content = ""
        finish_reason = None
        if raw_chunk.choices:
            choice = raw_chunk.choices[0]
            if choice.delta:
                content = choice.delta.content or ""
            finish_reason = choice.finish_reason
        return ProviderResponse(
            content=content, finish_reason=finish_reason, id=raw_chunk.id, raw=raw_chunk
        )

    def tool_result_message(self, output: ToolCallOutput) -> dict[str, Any]:
        """Convert ToolCallOutput to an OpenAI tool message."""
        return {
            "role": "tool",
            "tool_call_id": output.call_id,
            "content": output.output,
        }

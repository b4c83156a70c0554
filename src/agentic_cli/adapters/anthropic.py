"""Anthropic adapter for pure request/response transformations."""

from __future__ import annotations

import json
from typing import Any, Sequence

from anthropic.types import Message

from agentic_cli.types.chat import (
    ChatMessage,
    ProviderRequest,
    ProviderResponse,
    Usage,
    coerce_tool_call,
    tool_choice_name,
)
from agentic_cli.types.tool import Tool, ToolCall, ToolCallOutput

DEFAULT_MAX_TOKENS = 4096

_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "tool_use": "tool_calls",
    "max_tokens": "length",
}


def ephemeral(text: str) -> dict[str, Any]:
    """Return a text block marked for Anthropic's 5‑minute *ephemeral* prompt cache."""
    return {
        "type": "text",
        "text": text,
        "cache_control": {"type": "ephemeral"},
    }


class AnthropicRequestAdapter:
    """Adapter for converting between generic format and Anthropic format."""

    def build_messages(
        self, messages: Sequence[ChatMessage]
    ) -> tuple[Any, list[dict[str, Any]]]:
        """Return ``(system, messages)`` in Messages API shape."""
        system: Any = None
        anthropic_messages: list[dict[str, Any]] = []

        for msg in messages:
            role = msg["role"]
            content = msg.get("content")

            if role == "system":
                # str or a list of content blocks (cache control)
                system = content if isinstance(content, (str, list)) else str(content or "")
                continue

            if role == "tool":
                block = self.tool_result_message(
                    ToolCallOutput(call_id=msg["tool_call_id"], output=content or "")
                )["content"][0]
                previous = anthropic_messages[-1] if anthropic_messages else None
                # Consecutive tool results share one user turn
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and previous["content"]
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    anthropic_messages.append({"role": "user", "content": [block]})
                continue

            if role == "assistant" and msg.get("tool_calls"):
                blocks: list[dict[str, Any]] = []
                if isinstance(content, str) and content:
                    blocks.append({"type": "text", "text": content})
                elif isinstance(content, list):
                    blocks.extend(content)
                for raw_call in msg["tool_calls"]:
                    call = coerce_tool_call(raw_call)
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": call.id,
                            "name": call.name,
                            "input": self._safe_input(call),
                        }
                    )
                anthropic_messages.append({"role": "assistant", "content": blocks})
                continue

            anthropic_messages.append(
                {
                    "role": role,
                    "content": content if isinstance(content, (str, list)) else str(content or ""),
                }
            )

        return system, anthropic_messages

    @staticmethod
    def _safe_input(call: ToolCall) -> dict[str, Any]:
        try:
            return call.parse_arguments()
        except ValueError:
            return {}

    @staticmethod
    def build_tools(tools: Sequence[Tool]) -> list[dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters or {"type": "object", "properties": {}},
            }
            for tool in tools
        ]

    @staticmethod
    def build_tool_choice(choice: Any) -> dict[str, Any] | None:
        name = tool_choice_name(choice)
        if name:
            return {"type": "tool", "name": name}
        if isinstance(choice, dict):
            return choice
        return {
            "auto": {"type": "auto"},
            "required": {"type": "any"},
            "any": {"type": "any"},
            "none": {"type": "none"},
        }.get(choice)

    def to_provider(self, request: ProviderRequest, model: str) -> dict[str, Any]:
        """Convert a ProviderRequest to ``messages.create`` kwargs."""
        system, messages = self.build_messages(request.messages)
        args: dict[str, Any] = {
            "model": model,
            "messages": messages,
            # Anthropic requires max_tokens
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
        }
        if system:
            args["system"] = system
        if request.temperature is not None:
            args["temperature"] = request.temperature
        if request.stop is not None:
            args["stop_sequences"] = request.stop if isinstance(request.stop, list) else [request.stop]
        if request.tools:
            args["tools"] = self.build_tools(request.tools)
            tool_choice = self.build_tool_choice(request.tool_choice)
            if tool_choice is not None:
                args["tool_choice"] = tool_choice

        for k, v in request.extra.items():
            args.setdefault(k, v)
        return args

    def from_provider(self, raw: Message) -> ProviderResponse:
        """Convert Anthropic response to a ProviderResponse."""
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []

        for block in raw.content or []:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id,
                        name=block.name,
                        arguments=json.dumps(block.input if isinstance(block.input, dict) else {}),
                    )
                )

        usage = None
        if raw.usage is not None:
            prompt = raw.usage.input_tokens or 0
            completion = raw.usage.output_tokens or 0
            usage = Usage(prompt, completion, prompt + completion)

        return ProviderResponse(
            content="".join(text_parts),
            tool_calls=tool_calls or None,
            usage=usage,
            finish_reason=_STOP_REASONS.get(raw.stop_reason, raw.stop_reason),
            id=raw.id,
            model=raw.model,
            raw=raw,
        )

    def stream_text(self, raw_chunk: Any) -> ProviderResponse:
        """Extract content from Anthropic streaming event."""
        content = ""
        finish_reason = None
        event_type = getattr(raw_chunk, "type", None)
        if event_type == "content_block_delta":
            delta = getattr(raw_chunk, "delta", None)
            if getattr(delta, "type", None) == "text_delta":
                content = delta.text
        elif event_type == "message_delta":
            stop_reason = getattr(raw_chunk.delta, "stop_reason", None)
            finish_reason = _STOP_REASONS.get(stop_reason, stop_reason)
        return ProviderResponse(content=content, finish_reason=finish_reason, raw=raw_chunk)

    def tool_result_message(self, output: ToolCallOutput) -> dict[str, Any]:
        """Convert ToolCallOutput to an Anthropic user message."""
        return {
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": output.call_id,
                    "content": output.output,
                }
            ],
        }

"""Gemini adapter for pure request/response transformations (google-genai)."""

from __future__ import annotations

import json
import uuid
from typing import Any, Optional, Sequence

from google.genai import types

from agentic_cli.types.chat import (
    ChatMessage,
    ProviderRequest,
    ProviderResponse,
    Usage,
    coerce_tool_call,
    tool_choice_name,
)
from agentic_cli.types.tool import Tool, ToolCall, ToolCallOutput

_FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
}

# JSON schema keyword -> types.Schema field
_SCHEMA_KEYS = {
    "description": "description",
    "format": "format",
    "nullable": "nullable",
    "minimum": "minimum",
    "maximum": "maximum",
    "minItems": "min_items",
    "maxItems": "max_items",
    "title": "title",
}


def to_gemini_schema(schema: dict[str, Any]) -> types.Schema:
    """Convert a JSON schema dict to ``types.Schema``, dropping unsupported keywords."""
    fields: dict[str, Any] = {}

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        non_null = [t for t in schema_type if t != "null"]
        if len(non_null) < len(schema_type):
            fields["nullable"] = True
        schema_type = non_null[0] if non_null else None
    if schema_type:
        fields["type"] = types.Type(str(schema_type).upper())

    for key, target in _SCHEMA_KEYS.items():
        if key in schema:
            fields[target] = schema[key]

    if "enum" in schema:
        fields["enum"] = [str(v) for v in schema["enum"]]
    if isinstance(schema.get("properties"), dict):
        fields["properties"] = {
            name: to_gemini_schema(sub) for name, sub in schema["properties"].items()
        }
    if schema.get("required"):
        fields["required"] = list(schema["required"])
    if isinstance(schema.get("items"), dict):
        fields["items"] = to_gemini_schema(schema["items"])
    if isinstance(schema.get("anyOf"), list):
        fields["any_of"] = [to_gemini_schema(sub) for sub in schema["anyOf"]]

    return types.Schema(**fields)


def _response_payload(output: str) -> dict[str, Any]:
    """FunctionResponse.response must be an object."""
    try:
        parsed = json.loads(output)
    except (TypeError, ValueError):
        return {"output": output}
    return parsed if isinstance(parsed, dict) else {"output": parsed}


class GeminiRequestAdapter:
    """Adapter for converting between generic format and google-genai types."""

    def build_contents(
        self, messages: Sequence[ChatMessage]
    ) -> tuple[Optional[str], list[types.Content]]:
        """Return ``(system_instruction, contents)``."""
        system: Optional[str] = None
        contents: list[types.Content] = []
        call_names: dict[str, str] = {}
        tool_turn_open = False

        for msg in messages:
            role = msg["role"]
            content = msg.get("content")

            if role == "system":
                system = content if isinstance(content, str) else str(content or "")
                continue

            if role == "tool":
                call_id = msg.get("tool_call_id", "")
                name = msg.get("name") or call_names.get(call_id, "")
                [part] = self.tool_result_message(
                    ToolCallOutput(call_id=call_id, output=content or ""), name
                ).parts
                # Consecutive tool results share one user turn
                if tool_turn_open:
                    contents[-1].parts.append(part)
                else:
                    contents.append(types.Content(role="user", parts=[part]))
                    tool_turn_open = True
                continue

            tool_turn_open = False
            parts: list[types.Part] = []
            if content:
                parts.append(types.Part(text=content if isinstance(content, str) else str(content)))

            if role == "assistant":
                for raw_call in msg.get("tool_calls") or []:
                    call = coerce_tool_call(raw_call)
                    call_names[call.id] = call.name
                    try:
                        args = call.parse_arguments()
                    except ValueError:
                        args = {}
                    parts.append(
                        types.Part(function_call=types.FunctionCall(name=call.name, args=args))
                    )

            if parts:
                contents.append(
                    types.Content(role="model" if role == "assistant" else "user", parts=parts)
                )

        return system, contents

    @staticmethod
    def build_tools(tools: Sequence[Tool]) -> list[types.Tool]:
        declarations = [
            types.FunctionDeclaration(
                name=tool.name,
                description=tool.description,
                parameters=to_gemini_schema(tool.parameters) if tool.parameters else None,
            )
            for tool in tools
        ]
        return [types.Tool(function_declarations=declarations)]

    @staticmethod
    def build_tool_config(choice: Any) -> Optional[types.ToolConfig]:
        if choice is None:
            return None
        name = tool_choice_name(choice)
        if name:
            config = types.FunctionCallingConfig(
                mode=types.FunctionCallingConfigMode.ANY, allowed_function_names=[name]
            )
        else:
            mode = {
                "auto": types.FunctionCallingConfigMode.AUTO,
                "required": types.FunctionCallingConfigMode.ANY,
                "any": types.FunctionCallingConfigMode.ANY,
                "none": types.FunctionCallingConfigMode.NONE,
            }.get(str(choice).lower())
            if mode is None:
                return None
            config = types.FunctionCallingConfig(mode=mode)
        return types.ToolConfig(function_calling_config=config)

    def to_provider(self, request: ProviderRequest, model: str) -> dict[str, Any]:
        """Convert a ProviderRequest to ``models.generate_content`` kwargs."""
        system, contents = self.build_contents(request.messages)
        config: dict[str, Any] = {}
        if system:
            config["system_instruction"] = system
        if request.temperature is not None:
            config["temperature"] = request.temperature
        if request.max_tokens is not None:
            config["max_output_tokens"] = request.max_tokens
        if request.n is not None:
            config["candidate_count"] = request.n
        if request.stop is not None:
            config["stop_sequences"] = request.stop if isinstance(request.stop, list) else [request.stop]
        if request.tools:
            config["tools"] = self.build_tools(request.tools)
            tool_config = self.build_tool_config(request.tool_choice)
            if tool_config is not None:
                config["tool_config"] = tool_config

        for k, v in request.extra.items():
            config.setdefault(k, v)

        return {
            "model": model,
            "contents": contents,
            "config": types.GenerateContentConfig(**config),
        }

    def from_provider(self, raw: types.GenerateContentResponse) -> ProviderResponse:
        """Convert a GenerateContentResponse to a ProviderResponse."""
        if not raw.candidates:
            feedback = getattr(raw, "prompt_feedback", None)
            raise ValueError(f"Gemini response contained no candidates: {feedback}")

        candidate = raw.candidates[0]
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for part in (candidate.content.parts if candidate.content else None) or []:
            if part.function_call is not None:
                fc = part.function_call
                tool_calls.append(
                    ToolCall(
                        id=fc.id or f"{fc.name}_{uuid.uuid4().hex}",
                        name=fc.name or "",
                        arguments=json.dumps(fc.args or {}),
                    )
                )
            elif part.text and not part.thought:
                text_parts.append(part.text)

        usage = None
        meta = raw.usage_metadata
        if meta is not None:
            prompt = meta.prompt_token_count or 0
            completion = meta.candidates_token_count or 0
            usage = Usage(prompt, completion, meta.total_token_count or prompt + completion)

        finish_reason = None
        if tool_calls:
            finish_reason = "tool_calls"
        elif candidate.finish_reason is not None:
            reason = getattr(candidate.finish_reason, "value", str(candidate.finish_reason))
            finish_reason = _FINISH_REASONS.get(reason, reason.lower())

        return ProviderResponse(
            content="".join(text_parts),
            tool_calls=tool_calls or None,
            usage=usage,
            finish_reason=finish_reason,
            id=raw.response_id,
            model=raw.model_version,
            raw=raw,
        )

    def stream_text(self, raw_chunk: types.GenerateContentResponse) -> ProviderResponse:
        """Extract text from a streamed chunk."""
        content = ""
        if raw_chunk.candidates and raw_chunk.candidates[0].content:
            content = "".join(
                part.text
                for part in raw_chunk.candidates[0].content.parts or []
                if part.text and not part.thought
            )
        return ProviderResponse(content=content, raw=raw_chunk)

    def tool_result_message(self, output: ToolCallOutput, name: str) -> types.Content:
        """Convert ToolCallOutput to a user Content holding a function response."""
        return types.Content(
            role="user",
            parts=[
                types.Part(
                    function_response=types.FunctionResponse(
                        name=name, response=_response_payload(output.output)
                    )
                )
            ],
        )

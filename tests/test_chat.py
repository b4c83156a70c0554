"""Comprehensive test suite for parameter normalization and request building."""

import pytest

from agentic_cli.adapters.openai import OpenAIRequestAdapter
from agentic_cli.params import build_request, normalize_params
from agentic_cli.types import (
    ErrorInfo,
    ProviderRequest,
    ProviderResponse,
    Tool,
    ToolCall,
    ToolCallOutput,
    ToolResultsRequest,
    Usage,
    assistant_message,
    coerce_tool_call,
    tool_message,
)


class TestParamsNormalization:
    """Test parameter normalization functionality."""

    def test_basic_params_normalization(self):
        """Test basic parameter normalization with core parameters."""
        params = normalize_params(
            {
                "temperature": 0.7,
                "max_tokens": 100,
                "n": 2,
                "stop": ["END"],
                "stream": True,
            }
        )

        assert params["temperature"] == 0.7
        assert params["max_tokens"] == 100
        assert params["n"] == 2
        assert params["stop"] == ["END"]
        assert params["stream"] is True

    def test_extra_params_handling(self):
        """Unknown keys are moved into extra."""
        params = normalize_params(
            {"temperature": 0.7, "reasoning_effort": "minimal", "top_p": 0.9}
        )

        assert params["temperature"] == 0.7
        assert params["extra"]["reasoning_effort"] == "minimal"
        assert params["extra"]["top_p"] == 0.9
        assert "top_p" not in params

    def test_none_values_handling(self):
        """None values stay on standard keys and are dropped from extra."""
        params = normalize_params(
            {"temperature": 0.7, "max_tokens": None, "top_k": None}
        )

        assert params["max_tokens"] is None
        assert "top_k" not in params["extra"]

        params = normalize_params(None)
        assert params["stream"] is False
        assert params["extra"] == {}

    def test_existing_extra_dict_merge(self):
        """Explicit extra wins over moved keys."""
        params = normalize_params(
            {
                "reasoning_effort": "minimal",
                "extra": {"reasoning_effort": "high", "custom": "value"},
            }
        )

        assert params["extra"]["reasoning_effort"] == "high"
        assert params["extra"]["custom"] == "value"

    def test_invalid_params_type(self):
        with pytest.raises(TypeError):
            normalize_params(["temperature", 0.1])
        with pytest.raises(TypeError):
            normalize_params({"extra": "nope"})

    def test_build_request_copies_messages(self):
        messages = [{"role": "user", "content": "Hello"}]
        request = build_request(messages, {"temperature": 0.2, "seed": 7})

        assert isinstance(request, ProviderRequest)
        assert request.temperature == 0.2
        assert request.extra == {"seed": 7}
        request.messages.append({"role": "assistant", "content": "Hi"})
        assert len(messages) == 1


class TestChatTypes:
    """Test the canonical message helpers and dataclasses."""

    def test_tool_call_parse_arguments(self):
        assert ToolCall("c1", "f", "").parse_arguments() == {}
        assert ToolCall("c1", "f", '{"a": 1}').parse_arguments() == {"a": 1}
        with pytest.raises(ValueError):
            ToolCall("c1", "f", "[1, 2]").parse_arguments()
        with pytest.raises(ValueError):
            ToolCall("c1", "f", "{broken").parse_arguments()

    def test_coerce_tool_call_from_openai_dict(self):
        call = coerce_tool_call(
            {"id": "call_1", "type": "function", "function": {"name": "calc", "arguments": {"a": 2}}}
        )
        assert call == ToolCall("call_1", "calc", '{"a": 2}')

    def test_message_builders(self):
        calls = [ToolCall("c1", "get_weather", "{}")]
        assert assistant_message(None, calls) == {
            "role": "assistant",
            "content": "",
            "tool_calls": calls,
        }
        assert tool_message(ToolCallOutput("c1", "sunny"), "get_weather") == {
            "role": "tool",
            "tool_call_id": "c1",
            "content": "sunny",
            "name": "get_weather",
        }

    def test_request_copy_does_not_share_messages(self):
        request = ProviderRequest(messages=[{"role": "user", "content": "a"}])
        copy = request.copy(temperature=0.5)
        copy.messages.append({"role": "assistant", "content": "b"})

        assert len(request.messages) == 1
        assert copy.temperature == 0.5

    def test_with_tool_outputs(self):
        request = ProviderRequest(messages=[{"role": "user", "content": "a"}], model="m")
        outputs = [ToolCallOutput("c1", "x")]
        follow_up = request.with_tool_outputs(outputs)

        assert isinstance(follow_up, ToolResultsRequest)
        assert follow_up.model == "m"
        assert follow_up.tool_outputs == outputs

    def test_usage_accumulates(self):
        assert Usage(1, 2, 3) + Usage(10, 20, 30) == Usage(11, 22, 33)

    def test_response_helpers(self):
        ok = ProviderResponse(content="hi")
        assert ok and not ok.is_error and not ok.has_tool_calls
        ok.raise_for_error()

        failed = ProviderResponse.failure(ErrorInfo("boom", "api_error"))
        assert not failed
        with pytest.raises(RuntimeError, match="boom"):
            failed.raise_for_error()


class TestOpenAIRequestAdapter:
    """Test OpenAI request adapter functionality."""

    @pytest.fixture
    def adapter(self):
        """Create OpenAIRequestAdapter instance for testing."""
        return OpenAIRequestAdapter()

    def test_to_provider_basic_functionality(self, adapter):
        """Test basic to_provider functionality."""
        request = build_request(
            [{"role": "user", "content": "Hello"}], {"temperature": 0.7, "max_tokens": 100}
        )

        result = adapter.to_provider(request, "gpt-4o")

        assert result["model"] == "gpt-4o"
        assert result["temperature"] == 0.7
        assert result["max_tokens"] == 100
        assert "stream" not in result
        assert "tools" not in result

    def test_max_completion_tokens_for_reasoning_models(self, adapter):
        request = build_request([{"role": "user", "content": "Hi"}], {"max_tokens": 50})

        result = adapter.to_provider(request, "o3-mini")

        assert result["max_completion_tokens"] == 50
        assert "max_tokens" not in result

    def test_to_provider_tool_calls(self, adapter):
        """Canonical tool calls become chat-completions tool_calls."""
        messages = [
            {"role": "user", "content": "Calculate 2+2"},
            assistant_message("", [ToolCall("call_1", "calc", '{"a": 2, "b": 2}')]),
            tool_message(ToolCallOutput("call_1", "4"), "calc"),
        ]

        result = adapter.to_provider(ProviderRequest(messages=messages), "gpt-4o")

        assistant = result["messages"][1]
        assert assistant["content"] is None
        assert assistant["tool_calls"] == [
            {
                "id": "call_1",
                "type": "function",
                "function": {"name": "calc", "arguments": '{"a": 2, "b": 2}'},
            }
        ]
        assert result["messages"][2] == {"role": "tool", "content": "4", "tool_call_id": "call_1"}

    def test_tools_and_tool_choice(self, adapter):
        tool = Tool(
            "calc",
            "Add numbers",
            {"type": "object", "properties": {}, "additionalProperties": False},
            strict=True,
        )
        request = ProviderRequest(
            messages=[{"role": "user", "content": "x"}],
            tools=[tool],
            tool_choice={"type": "function", "name": "calc"},
            extra={"parallel_tool_calls": False},
        )

        result = adapter.to_provider(request, "gpt-4o")

        assert result["tools"] == [
            {
                "type": "function",
                "function": {
                    "name": "calc",
                    "description": "Add numbers",
                    "parameters": tool.parameters,
                    "strict": True,
                },
            }
        ]
        assert result["tool_choice"] == {"type": "function", "function": {"name": "calc"}}
        assert result["parallel_tool_calls"] is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""Tests for the Anthropic adapter and provider."""

import json
from unittest.mock import AsyncMock

import pytest
from anthropic import AsyncAnthropic
from anthropic.types import Message

from agentic_cli.adapters.anthropic import AnthropicRequestAdapter, ephemeral
from agentic_cli.config import ProviderConfig
from agentic_cli.providers import AnthropicProvider
from agentic_cli.types import (
    ProviderRequest,
    Tool,
    ToolCall,
    ToolCallOutput,
    ToolResultsRequest,
    assistant_message,
    tool_message,
)


def make_message(content, stop_reason="end_turn"):
    return Message.model_validate(
        {
            "id": "msg_1",
            "type": "message",
            "role": "assistant",
            "model": "claude-sonnet-4-20250514",
            "content": content,
            "stop_reason": stop_reason,
            "stop_sequence": None,
            "usage": {"input_tokens": 12, "output_tokens": 8},
        }
    )


@pytest.fixture
def adapter():
    return AnthropicRequestAdapter()


class TestToProvider:
    def test_system_prompt_and_default_max_tokens(self, adapter):
        request = ProviderRequest(
            messages=[
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "Hello"},
            ],
            stop="END",
        )

        args = adapter.to_provider(request, "claude-x")

        assert args["system"] == "Be brief."
        assert args["messages"] == [{"role": "user", "content": "Hello"}]
        assert args["max_tokens"] == 4096
        assert args["stop_sequences"] == ["END"]

    def test_cache_control_system_blocks_pass_through(self, adapter):
        request = ProviderRequest(
            messages=[
                {"role": "system", "content": [ephemeral("long context")]},
                {"role": "user", "content": "Hi"},
            ]
        )

        args = adapter.to_provider(request, "claude-x")

        assert args["system"][0]["cache_control"] == {"type": "ephemeral"}

    def test_tool_use_and_grouped_tool_results(self, adapter):
        calls = [ToolCall("c1", "get_weather", '{"location": "Paris"}'), ToolCall("c2", "get_time", "")]
        request = ProviderRequest(
            messages=[
                {"role": "user", "content": "Weather and time?"},
                assistant_message("Let me check.", calls),
                tool_message(ToolCallOutput("c1", "15C"), "get_weather"),
                tool_message(ToolCallOutput("c2", "noon"), "get_time"),
            ]
        )

        messages = adapter.to_provider(request, "claude-x")["messages"]

        assert len(messages) == 3
        assert messages[1] == {
            "role": "assistant",
            "content": [
                {"type": "text", "text": "Let me check."},
                {"type": "tool_use", "id": "c1", "name": "get_weather", "input": {"location": "Paris"}},
                {"type": "tool_use", "id": "c2", "name": "get_time", "input": {}},
            ],
        }
        assert messages[2] == {
            "role": "user",
            "content": [
                {"type": "tool_result", "tool_use_id": "c1", "content": "15C"},
                {"type": "tool_result", "tool_use_id": "c2", "content": "noon"},
            ],
        }

    @pytest.mark.parametrize(
        "choice, expected",
        [
            ("auto", {"type": "auto"}),
            ("required", {"type": "any"}),
            ("none", {"type": "none"}),
            ({"type": "function", "function": {"name": "calc"}}, {"type": "tool", "name": "calc"}),
        ],
    )
    def test_tool_choice_mapping(self, adapter, choice, expected):
        tool = Tool("calc", "Add", {"type": "object", "properties": {}})
        request = ProviderRequest(
            messages=[{"role": "user", "content": "x"}], tools=[tool], tool_choice=choice
        )

        args = adapter.to_provider(request, "claude-x")

        assert args["tools"] == [
            {"name": "calc", "description": "Add", "input_schema": {"type": "object", "properties": {}}}
        ]
        assert args["tool_choice"] == expected


class TestFromProvider:
    def test_text_and_tool_use(self, adapter):
        raw = make_message(
            [
                {"type": "text", "text": "Checking"},
                {"type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {"location": "Paris"}},
            ],
            stop_reason="tool_use",
        )

        response = adapter.from_provider(raw)

        assert response.content == "Checking"
        assert response.tool_calls[0].id == "toolu_1"
        assert json.loads(response.tool_calls[0].arguments) == {"location": "Paris"}
        assert response.finish_reason == "tool_calls"
        assert (response.usage.prompt_tokens, response.usage.completion_tokens, response.usage.total_tokens) == (12, 8, 20)

    def test_stop_reason_mapping(self, adapter):
        assert adapter.from_provider(make_message([{"type": "text", "text": "x"}])).finish_reason == "stop"
        assert (
            adapter.from_provider(make_message([{"type": "text", "text": "x"}], "max_tokens")).finish_reason
            == "length"
        )


class TestProvider:
    @pytest.mark.asyncio
    async def test_continuation_round_trip(self, monkeypatch):
        client = AsyncAnthropic(api_key="test")
        create = AsyncMock(return_value=make_message([{"type": "text", "text": "It is 15C"}]))
        monkeypatch.setattr(client.messages, "create", create)
        provider = AnthropicProvider.from_client(client, ProviderConfig("anthropic", top_k=5))

        calls = [ToolCall("c1", "get_weather", '{"location": "Paris"}')]
        request = ToolResultsRequest(
            messages=[{"role": "user", "content": "Weather?"}, assistant_message("", calls)],
            tool_outputs=[ToolCallOutput("c1", "15C")],
        )
        response = await provider.generate_text_with_tool_results(request)

        assert response.content == "It is 15C"
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == AnthropicProvider.default_model
        assert kwargs["top_k"] == 5
        assert kwargs["messages"][-1] == {
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": "c1", "content": "15C"}],
        }

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_classified(self, monkeypatch):
        client = AsyncAnthropic(api_key="test")
        monkeypatch.setattr(client.messages, "create", AsyncMock(side_effect=KeyError("boom")))
        provider = AnthropicProvider.from_client(client)

        response = await provider.chat(ProviderRequest(messages=[{"role": "user", "content": "x"}]))

        assert response.is_error
        assert response.error.code == "KeyError"

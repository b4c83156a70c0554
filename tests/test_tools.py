"""Tests for the tool registry, executor and result formatter."""

import asyncio
import json
import logging
import time

import pytest

from agentic_cli.tools import ToolExecutor, ToolRegistry, ToolResultFormatter
from agentic_cli.types import ToolCall, ToolCallOutput, ToolExecutionResult
from agentic_cli.types.tool import Tool

OBJECT = {"type": "object", "properties": {}}


@pytest.fixture
def registry():
    return ToolRegistry()


class TestToolRegistry:
    def test_register_and_lookup(self, registry):
        calc = Tool("calc", "Add numbers", OBJECT)

        assert registry.register_tool(calc) is True
        assert registry.get_tool("calc") is calc
        assert registry.get_tool("missing") is None
        assert "calc" in registry
        assert len(registry) == 1

    def test_duplicate_keeps_first(self, registry, caplog):
        first = Tool("calc", "first", OBJECT)
        second = Tool("calc", "second", OBJECT)

        with caplog.at_level(logging.WARNING):
            assert registry.register_tool(first) is True
            assert registry.register_tool(second) is False

        assert registry.get_tool("calc").description == "first"
        assert "already registered" in caplog.text

    def test_register_tools_counts_successes(self, registry):
        count = registry.register_tools(
            [Tool("a", "A", OBJECT), Tool("b", "B", OBJECT), Tool("a", "again", OBJECT)]
        )

        assert count == 2
        assert [t.name for t in registry.get_all_tools()] == ["a", "b"]

    def test_get_tools_with_predicate(self, registry):
        registry.register_tools(
            [Tool("read", "Read", OBJECT, side_effect_free=True), Tool("write", "Write", OBJECT)]
        )

        assert [t.name for t in registry.get_tools(lambda t: t.side_effect_free)] == ["read"]

    def test_valid_tools(self, registry):
        registry.register_tool(Tool("get_weather", "Weather", OBJECT))

        for provider in ("openai", "anthropic", "google", "grok"):
            assert registry.validate_tools_for_provider(provider).valid

    def test_collects_every_violation(self, registry):
        registry.register_tools(
            [
                Tool("bad name!", "", {"type": "string"}),
                Tool("ok", "fine", OBJECT),
            ]
        )

        result = registry.validate_tools_for_provider("openai")

        assert not result.valid
        assert result.invalid_tools == ["bad name!"]
        assert len(result.messages) == 3
        assert all(m.startswith("bad name!: ") for m in result.messages)

    def test_strict_tools_for_openai(self, registry):
        registry.register_tool(
            Tool(
                "lookup",
                "Lookup",
                {"type": "object", "properties": {"q": {"type": "string"}, "n": {"type": "integer"}}, "required": ["q"]},
                strict=True,
            )
        )

        openai_result = registry.validate_tools_for_provider("openai")

        assert not openai_result.valid
        assert any("additionalProperties" in m for m in openai_result.messages)
        assert any("missing n" in m for m in openai_result.messages)
        # strict is an OpenAI-style concern only
        assert registry.validate_tools_for_provider("anthropic").valid

    def test_google_names_must_start_with_letter(self, registry):
        registry.register_tool(Tool("1tool", "Numbered", OBJECT))

        assert registry.validate_tools_for_provider("openai").valid
        assert not registry.validate_tools_for_provider("google").valid

    def test_unknown_provider_gets_common_rules(self, registry):
        registry.register_tool(Tool("weird name", "desc", OBJECT))

        assert registry.validate_tools_for_provider("mystery").valid


@pytest.fixture
def executor(registry):
    registry.register_tool(Tool("add", "Add", OBJECT))
    return ToolExecutor(registry, {"add": lambda a, b: a + b}, timeout=1.0)


class TestToolExecutor:
    @pytest.mark.asyncio
    async def test_sync_tool_output_is_serialized(self, executor):
        result = await executor.execute_tool("add", {"a": 2, "b": 3})

        assert result == ToolExecutionResult.ok("5")

    @pytest.mark.asyncio
    async def test_async_tool(self, executor):
        async def echo(text):
            return {"echo": text}

        executor.register_implementation("echo", echo)

        result = await executor.execute_tool("echo", {"text": "hi"})

        assert result.success
        assert json.loads(result.output) == {"echo": "hi"}

    @pytest.mark.asyncio
    async def test_string_output_is_kept(self, executor):
        executor.register_implementation("greet", lambda: "hello")

        assert (await executor.execute_tool("greet", {})).output == "hello"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor):
        result = await executor.execute_tool("nope", {})

        assert not result.success
        assert result.error.code == "tool_not_found"

    @pytest.mark.asyncio
    async def test_exception_becomes_failure(self, executor):
        def broken():
            raise RuntimeError("disk on fire")

        executor.register_implementation("broken", broken)

        result = await executor.execute_tool("broken", {})

        assert result.error.code == "tool_execution_error"
        assert result.error.message == "disk on fire"
        assert result.error.details == {"exception": "RuntimeError"}

    @pytest.mark.asyncio
    async def test_bad_keyword_arguments(self, executor):
        result = await executor.execute_tool("add", {"a": 1})

        assert result.error.code == "tool_execution_error"
        assert result.error.details == {"exception": "TypeError"}

    @pytest.mark.asyncio
    async def test_timeout(self, registry):
        async def slow():
            await asyncio.sleep(1)

        executor = ToolExecutor(registry, {"slow": slow}, timeout=0.01)

        result = await executor.execute_tool("slow", {})

        assert result.error.code == "tool_timeout"
        assert result.error.details == {"timeout": 0.01}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fast_is_async", [False, True])
    async def test_timed_out_sync_tool_finishes_before_next_tool(self, registry, fast_is_async):
        events = []

        def slow():
            events.append("slow-start")
            time.sleep(0.3)
            events.append("slow-end")
            return "late"

        def fast():
            events.append("fast-run")
            return "ok"

        async def fast_async():
            return fast()

        executor = ToolExecutor(
            registry, {"slow": slow, "fast": fast_async if fast_is_async else fast}, timeout=0.05
        )

        first = await executor.execute_tool("slow", {})
        second = await executor.execute_tool("fast", {})

        assert first.error.code == "tool_timeout"
        assert second == ToolExecutionResult.ok("ok")
        assert events == ["slow-start", "slow-end", "fast-run"]

    @pytest.mark.asyncio
    async def test_timeout_raised_by_the_tool_is_an_execution_error(self, executor):
        def lookup():
            raise TimeoutError("upstream socket timed out")

        executor.register_implementation("lookup", lookup)

        result = await executor.execute_tool("lookup", {})

        assert result.error.code == "tool_execution_error"
        assert result.error.message == "upstream socket timed out"
        assert result.error.details == {"exception": "TimeoutError"}

    @pytest.mark.asyncio
    async def test_async_tool_raising_timeout_is_an_execution_error(self, executor):
        async def fetch():
            raise asyncio.TimeoutError("read timed out")

        executor.register_implementation("fetch", fetch)

        result = await executor.execute_tool("fetch", {})

        assert result.error.code == "tool_execution_error"

    @pytest.mark.asyncio
    async def test_invalid_json_arguments(self, executor):
        result = await executor.execute_tool_call(ToolCall("c1", "add", "{oops"))

        assert result.error.code == "invalid_arguments"
        assert result.error.details == {"arguments": "{oops"}

    @pytest.mark.asyncio
    async def test_execute_tool_call(self, executor):
        result = await executor.execute_tool_call(ToolCall("c1", "add", '{"a": 1, "b": 1}'))

        assert result.output == "2"

    def test_register_requires_callable(self, executor):
        with pytest.raises(TypeError):
            executor.register_implementation("x", "not callable")

    def test_side_effect_flag_comes_from_registry(self, registry):
        registry.register_tool(Tool("peek", "Read only", OBJECT, side_effect_free=True))
        executor = ToolExecutor(registry)

        assert executor.is_side_effect_free("peek")
        assert not executor.is_side_effect_free("unknown")
        assert not executor.has_tool("peek")


class TestToolResultFormatter:
    def test_success_is_raw_output(self):
        output = ToolResultFormatter().format_result(ToolExecutionResult.ok("15C"), "c1", "openai")

        assert output == ToolCallOutput("c1", "15C")

    def test_failure_is_json_envelope(self):
        result = ToolExecutionResult.failure("boom", "tool_execution_error", {"exception": "ValueError"})

        output = ToolResultFormatter().format_result(result, "c1", "anthropic")

        assert json.loads(output.output) == {
            "error": {
                "message": "boom",
                "code": "tool_execution_error",
                "details": {"exception": "ValueError"},
            }
        }

    def test_format_results_keeps_order(self):
        results = [ToolExecutionResult.ok("a"), ToolExecutionResult.ok("b")]

        outputs = ToolResultFormatter().format_results(results, ["c1", "c2"], "google")

        assert [(o.call_id, o.output) for o in outputs] == [("c1", "a"), ("c2", "b")]
        assert ToolResultFormatter().format_results([], []) == []

    def test_format_results_length_mismatch(self):
        with pytest.raises(ValueError):
            ToolResultFormatter().format_results([ToolExecutionResult.ok("a")], [])

    def test_custom_formatter(self):
        class Upper:
            def format_result(self, result, call_id):
                return ToolCallOutput(call_id, result.output.upper())

        formatter = ToolResultFormatter()
        formatter.register_formatter("grok", Upper())

        assert formatter.format_result(ToolExecutionResult.ok("hi"), "c1", "grok").output == "HI"
        assert formatter.format_result(ToolExecutionResult.ok("hi"), "c1", "openai").output == "hi"

    def test_unknown_provider_falls_back(self, caplog):
        with caplog.at_level(logging.WARNING):
            output = ToolResultFormatter().format_result(ToolExecutionResult.ok("x"), "c1", "mystery")

        assert output.output == "x"
        assert "No formatter registered" in caplog.text

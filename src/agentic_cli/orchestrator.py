"""
The tool-calling loop.

The orchestrator is the only component that iterates: it sends a request,
executes whatever tools the model asked for, feeds the results back and
repeats until the model answers without tool calls or the iteration cap is
reached. Providers perform one round trip per call.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from agentic_cli.errors import MaxIterationsExceededError
from agentic_cli.tools.executor import ToolExecutor
from agentic_cli.tools.formatter import ToolResultFormatter
from agentic_cli.types.chat import (
    ChatMessage,
    ProviderRequest,
    ProviderResponse,
    ToolResultsRequest,
    Usage,
    assistant_message,
    tool_message,
)
from agentic_cli.types.tool import ToolCall, ToolCallOutput, ToolExecutionResult

__all__ = [
    "LoopState",
    "ToolLoopOptions",
    "ToolExecutionRecord",
    "ToolLoopOrchestrator",
    "ChatProvider",
]

Hook = Callable[..., Union[None, Awaitable[None]]]


class ChatProvider(Protocol):
    async def chat(self, request: ProviderRequest) -> ProviderResponse: ...

    async def generate_text_with_tool_results(
        self, request: ToolResultsRequest
    ) -> ProviderResponse: ...


class LoopState(StrEnum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"


@dataclass
class ToolLoopOptions:
    max_iterations: int = 10
    throw_on_max_iterations: bool = True
    include_trace_info: bool = False
    verbose: bool = False
    # Hooks may be plain functions or coroutines
    on_progress: Optional[Hook] = None  # (iteration, response)
    on_tool_execution: Optional[Hook] = None  # (name, args)
    on_tool_result: Optional[Hook] = None  # (name, ToolExecutionResult)
    # Only honoured when every tool in a batch is side-effect free
    concurrent_tools: bool = False
    cancel_event: Optional[asyncio.Event] = None

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")


@dataclass(slots=True)
class ToolExecutionRecord:
    iteration: int
    call_id: str
    name: str
    arguments: str
    success: bool
    output: str
    duration_ms: float


@dataclass(slots=True)
class _LoopTrace:
    iterations: int = 0
    usage: Usage = field(default_factory=Usage)
    records: list[ToolExecutionRecord] = field(default_factory=list)
    state: LoopState = LoopState.AWAITING_MODEL

    def as_dict(self) -> dict[str, Any]:
        return {
            "iterations": self.iterations,
            "tool_executions": [asdict(r) for r in self.records],
            "usage": asdict(self.usage),
            "state": self.state.value,
        }


class ToolLoopOrchestrator:
    """Drives a provider and a ToolExecutor until the model stops calling tools."""

    def __init__(
        self,
        executor: ToolExecutor,
        formatter: Optional[ToolResultFormatter] = None,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.executor = executor
        self.logger = logger or logging.getLogger(__name__)
        self.formatter = formatter or ToolResultFormatter(logger=self.logger)
        self.name = name if name is not None else self.__class__.__name__

    async def orchestrate(
        self,
        provider: ChatProvider,
        request: ProviderRequest,
        options: Optional[ToolLoopOptions] = None,
    ) -> ProviderResponse:
        """
        Run the tool loop for *request* and return the final response.

        Raises:
            MaxIterationsExceededError: the model still requested tools on the
                ``max_iterations``-th provider call and
                ``throw_on_max_iterations`` is set.
            asyncio.CancelledError: ``options.cancel_event`` was set.
        """
        options = options or ToolLoopOptions()
        level = logging.INFO if options.verbose else logging.DEBUG
        provider_type = getattr(provider, "provider_type", None)
        messages: list[ChatMessage] = list(request.messages)
        outputs: list[ToolCallOutput] = []
        trace = _LoopTrace()

        while True:
            trace.state = LoopState.AWAITING_MODEL
            self._check_cancelled(options)
            trace.iterations += 1
            iteration = trace.iterations
            self._log(f"Iteration {iteration}: calling provider", level)

            if iteration == 1:
                response = await provider.chat(request.copy(messages=list(messages)))
            else:
                response = await provider.generate_text_with_tool_results(
                    request.with_tool_outputs(outputs, messages=list(messages))
                )

            if response.usage is not None:
                trace.usage = trace.usage + response.usage
            await self._call_hook(options.on_progress, iteration, response)

            if response.is_error:
                self._log(f"Provider returned an error: {response.error}", logging.WARNING)
                return response

            if not response.has_tool_calls:
                trace.state = LoopState.DONE
                self._log(f"Done after {iteration} provider call(s)", level)
                if options.include_trace_info:
                    response.trace_info = trace.as_dict()
                return response

            if iteration >= options.max_iterations:
                trace.state = LoopState.MAX_ITERATIONS_REACHED
                self._log(
                    f"Reached max iterations ({options.max_iterations}) with "
                    f"{len(response.tool_calls)} pending tool call(s)",
                    logging.WARNING,
                )
                if options.throw_on_max_iterations:
                    raise MaxIterationsExceededError(
                        options.max_iterations, response, trace.as_dict()
                    )
                response.max_iterations_reached = True
                if options.include_trace_info:
                    response.trace_info = trace.as_dict()
                return response

            trace.state = LoopState.EXECUTING_TOOLS
            calls = list(response.tool_calls)
            outputs = await self._execute_tools(
                calls, iteration, provider_type, options, trace
            )

            names = {call.id: call.name for call in calls}
            messages.append(assistant_message(response.content, calls))
            messages.extend(tool_message(out, names.get(out.call_id)) for out in outputs)

    async def _execute_tools(
        self,
        calls: list[ToolCall],
        iteration: int,
        provider_type: Any,
        options: ToolLoopOptions,
        trace: _LoopTrace,
    ) -> list[ToolCallOutput]:
        concurrent = (
            options.concurrent_tools
            and len(calls) > 1
            and all(self.executor.is_side_effect_free(call.name) for call in calls)
        )
        if concurrent:
            self._log(f"Running {len(calls)} side-effect-free tools concurrently", logging.DEBUG)
            return list(
                await asyncio.gather(
                    *(
                        self._execute_one(call, iteration, provider_type, options, trace)
                        for call in calls
                    )
                )
            )

        outputs = []
        for call in calls:
            outputs.append(
                await self._execute_one(call, iteration, provider_type, options, trace)
            )
        return outputs

    async def _execute_one(
        self,
        call: ToolCall,
        iteration: int,
        provider_type: Any,
        options: ToolLoopOptions,
        trace: _LoopTrace,
    ) -> ToolCallOutput:
        self._check_cancelled(options)
        try:
            args = call.parse_arguments()
        except ValueError:
            args = {}
        await self._call_hook(options.on_tool_execution, call.name, args)

        started = time.perf_counter()
        result: ToolExecutionResult = await self.executor.execute_tool_call(call)
        duration_ms = (time.perf_counter() - started) * 1000

        await self._call_hook(options.on_tool_result, call.name, result)
        output = self.formatter.format_result(result, call.id, provider_type)
        trace.records.append(
            ToolExecutionRecord(
                iteration=iteration,
                call_id=call.id,
                name=call.name,
                arguments=call.arguments,
                success=result.success,
                output=output.output,
                duration_ms=round(duration_ms, 3),
            )
        )
        self._log(
            f"Tool '{call.name}' ({call.id}) {'succeeded' if result.success else 'failed'}",
            logging.INFO if options.verbose else logging.DEBUG,
        )
        return output

    @staticmethod
    async def _call_hook(hook: Optional[Hook], *args: Any) -> None:
        if hook is None:
            return
        result = hook(*args)
        if inspect.isawaitable(result):
            await result

    @staticmethod
    def _check_cancelled(options: ToolLoopOptions) -> None:
        if options.cancel_event is not None and options.cancel_event.is_set():
            raise asyncio.CancelledError("Tool loop cancelled")

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

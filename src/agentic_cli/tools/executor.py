"""Dispatch of tool calls to their local implementations."""

from __future__ import annotations

import asyncio
import contextvars
import functools
import inspect
import json
import logging
import threading
from typing import Any, Callable, Mapping, Optional

from agentic_cli.tools.registry import ToolRegistry
from agentic_cli.types.tool import ToolCall, ToolExecutionResult

__all__ = ["ToolExecutor", "ToolImplementation"]

ToolImplementation = Callable[..., Any]


class ToolExecutor:
    """
    Runs tool implementations by name.

    Problems with a tool (unknown name, bad arguments, an exception raised by
    the implementation, a timeout) come back as a failed
    ``ToolExecutionResult``; they are never raised. Cancellation is not
    captured.

    A sync tool runs in a worker thread, which cannot be interrupted. When it
    times out the thread is left to finish, and the next tool does not start
    until it has.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        implementations: Mapping[str, ToolImplementation] | None = None,
        *,
        timeout: float | None = 30.0,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.registry = registry
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.name = name if name is not None else self.__class__.__name__
        self._implementations: dict[str, ToolImplementation] = dict(implementations or {})
        self._lock = threading.Lock()
        # Thread futures of sync tools that outlived their timeout
        self._abandoned: list[asyncio.Future] = []

    def register_implementation(self, name: str, fn: ToolImplementation) -> None:
        if not callable(fn):
            raise TypeError(f"Implementation for '{name}' is not callable")
        with self._lock:
            self._implementations[name] = fn

    def has_tool(self, name: str) -> bool:
        with self._lock:
            return name in self._implementations

    def is_side_effect_free(self, name: str) -> bool:
        tool = self.registry.get_tool(name)
        return bool(tool and tool.side_effect_free)

    async def execute_tool(self, name: str, args: dict[str, Any]) -> ToolExecutionResult:
        """Run the tool *name* with keyword arguments *args*."""
        with self._lock:
            fn = self._implementations.get(name)
        if fn is None:
            self._log(f"Tool '{name}' not found", logging.WARNING)
            return ToolExecutionResult.failure(
                f"Tool '{name}' not found", "tool_not_found"
            )

        await self._wait_for_abandoned()
        self._log(f"Executing tool '{name}'", logging.DEBUG)
        worker: Optional[asyncio.Future] = None
        deadline = asyncio.timeout(self.timeout)
        try:
            async with deadline:
                if inspect.iscoroutinefunction(fn):
                    output = await fn(**args)
                else:
                    call = functools.partial(contextvars.copy_context().run, fn, **args)
                    worker = asyncio.get_running_loop().run_in_executor(None, call)
                    # The thread cannot be stopped; shielding keeps its future alive
                    output = await asyncio.shield(worker)
        except TimeoutError as exc:
            if not deadline.expired():
                return self._execution_failure(name, exc)
            if worker is not None and not worker.done():
                self._abandoned.append(worker)
            self._log(f"Tool '{name}' timed out after {self.timeout}s", logging.WARNING)
            return ToolExecutionResult.failure(
                f"Tool '{name}' timed out after {self.timeout} seconds",
                "tool_timeout",
                {"timeout": self.timeout},
            )
        except asyncio.CancelledError:
            if worker is not None and not worker.done():
                self._abandoned.append(worker)
            raise
        except Exception as exc:
            return self._execution_failure(name, exc)

        if not isinstance(output, str):
            output = json.dumps(output, default=str)
        return ToolExecutionResult.ok(output)

    async def _wait_for_abandoned(self) -> None:
        """Hold the next tool until sync tools that timed out have returned."""
        pending = list(self._abandoned)
        if not pending:
            return
        if not all(worker.done() for worker in pending):
            self._log("Waiting for a timed-out tool to finish", logging.WARNING)
            await asyncio.wait(pending)
        for worker in pending:
            if worker in self._abandoned:
                self._abandoned.remove(worker)
            if not worker.cancelled() and worker.exception() is not None:
                self._log(f"Timed-out tool failed later: {worker.exception()}", logging.DEBUG)

    def _execution_failure(self, name: str, exc: Exception) -> ToolExecutionResult:
        self._log(f"Tool '{name}' failed: {exc}", logging.WARNING)
        return ToolExecutionResult.failure(
            str(exc) or exc.__class__.__name__,
            "tool_execution_error",
            {"exception": exc.__class__.__name__},
        )

    async def execute_tool_call(self, call: ToolCall) -> ToolExecutionResult:
        """Decode the arguments of *call* and run it."""
        try:
            args = call.parse_arguments()
        except ValueError as exc:  # json.JSONDecodeError is a ValueError
            self._log(f"Invalid arguments for '{call.name}': {exc}", logging.WARNING)
            return ToolExecutionResult.failure(
                f"Invalid JSON arguments for tool '{call.name}': {exc}",
                "invalid_arguments",
                {"arguments": call.arguments},
            )
        return await self.execute_tool(call.name, args)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

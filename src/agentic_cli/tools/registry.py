"""Registry of tool definitions, keyed by name."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from agentic_cli.provider import ProviderType
from agentic_cli.types.tool import Tool

__all__ = ["ToolRegistry", "ToolValidationResult"]

_FUNCTION_NAME = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")
_GOOGLE_FUNCTION_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_.-]{0,63}$")


@dataclass(slots=True)
class ToolValidationResult:
    valid: bool = True
    invalid_tools: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    def add(self, tool_name: str, message: str) -> None:
        self.valid = False
        if tool_name not in self.invalid_tools:
            self.invalid_tools.append(tool_name)
        self.messages.append(f"{tool_name or '<unnamed>'}: {message}")


class ToolRegistry:
    """
    Holds tool definitions by name.

    The registry is an ordinary object: build one at startup and hand it to
    whoever needs it. Lookups return tools in registration order.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._tools: dict[str, Tool] = {}
        self._lock = threading.Lock()

    def register_tool(self, tool: Tool) -> bool:
        """Register *tool*. A duplicate name is rejected and the first one kept."""
        with self._lock:
            if tool.name in self._tools:
                self.logger.warning(
                    f"Tool '{tool.name}' is already registered; ignoring duplicate"
                )
                return False
            self._tools[tool.name] = tool
        self.logger.debug(f"Registered tool '{tool.name}'")
        return True

    def register_tools(self, tools: Iterable[Tool]) -> int:
        """Register each tool independently and return how many succeeded."""
        return sum(1 for tool in tools if self.register_tool(tool))

    def get_tool(self, name: str) -> Optional[Tool]:
        with self._lock:
            return self._tools.get(name)

    def get_all_tools(self) -> list[Tool]:
        with self._lock:
            return list(self._tools.values())

    def get_tools(self, predicate: Callable[[Tool], bool] | None = None) -> list[Tool]:
        """Return the registered tools, optionally filtered by *predicate*."""
        tools = self.get_all_tools()
        if predicate is None:
            return tools
        return [tool for tool in tools if predicate(tool)]

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def validate_tools_for_provider(
        self, provider_type: ProviderType | str
    ) -> ToolValidationResult:
        """
        Check every registered tool against the rules of *provider_type*.

        All violations are collected; validation never stops at the first one.
        Unknown provider types are checked against the common rules only.
        """
        result = ToolValidationResult()
        try:
            ptype: ProviderType | None = ProviderType(provider_type)
        except ValueError:
            ptype = None

        for tool in self.get_all_tools():
            self._validate_common(tool, result)
            if ptype in (ProviderType.OPENAI, ProviderType.GROK):
                self._validate_name(tool, _FUNCTION_NAME, result)
                self._validate_strict(tool, result)
            elif ptype is ProviderType.ANTHROPIC:
                self._validate_name(tool, _FUNCTION_NAME, result)
            elif ptype is ProviderType.GOOGLE:
                self._validate_name(tool, _GOOGLE_FUNCTION_NAME, result)

        if not result.valid:
            self.logger.warning(
                f"{len(result.invalid_tools)} tool(s) invalid for {provider_type}: "
                + "; ".join(result.messages)
            )
        return result

    @staticmethod
    def _validate_common(tool: Tool, result: ToolValidationResult) -> None:
        if not tool.name:
            result.add(tool.name, "name must be non-empty")
        if not tool.description:
            result.add(tool.name, "description is required")
        if not isinstance(tool.parameters, dict):
            result.add(tool.name, "parameters must be a JSON schema object")
        elif tool.parameters.get("type") != "object":
            result.add(tool.name, "parameters schema type must be 'object'")

    @staticmethod
    def _validate_name(
        tool: Tool, pattern: re.Pattern[str], result: ToolValidationResult
    ) -> None:
        if tool.name and not pattern.match(tool.name):
            result.add(tool.name, f"name does not match {pattern.pattern}")

    @staticmethod
    def _validate_strict(tool: Tool, result: ToolValidationResult) -> None:
        if not tool.strict or not isinstance(tool.parameters, dict):
            return
        if tool.parameters.get("additionalProperties") is not False:
            result.add(tool.name, "strict tools must set additionalProperties to false")
        properties = tool.parameters.get("properties") or {}
        required = set(tool.parameters.get("required") or [])
        missing = [prop for prop in properties if prop not in required]
        if missing:
            result.add(
                tool.name,
                "strict tools must list every property as required; missing "
                + ", ".join(missing),
            )

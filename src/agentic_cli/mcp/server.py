"""Serves the local tools (and the role tools) to MCP clients."""

from __future__ import annotations

import logging
from typing import Any, Optional

from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from agentic_cli import __version__
from agentic_cli.errors import AgenticCLIError
from agentic_cli.mcp.roles import Role, RoleToolHandler
from agentic_cli.tools import ToolExecutor, ToolRegistry, ToolResultFormatter
from agentic_cli.types.tool import Tool

__all__ = ["AgenticMCPServer", "MCPToolError", "DEFAULT_SERVER_NAME"]

DEFAULT_SERVER_NAME = "agentic-cli"

_ROLE_NAMES = frozenset(role.value for role in Role)


class MCPToolError(AgenticCLIError):
    """A tool call failed; the MCP SDK reports it to the client as an error result."""


class AgenticMCPServer:
    """
    Exposes a ``ToolRegistry``/``ToolExecutor`` pair over the Model Context
    Protocol.

    Tool names are published with *tool_prefix* prepended. A failed tool call
    raises ``MCPToolError`` carrying the JSON error envelope, which the SDK
    turns into a result with ``isError`` set.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        executor: ToolExecutor,
        *,
        roles: Optional[RoleToolHandler] = None,
        name: str = DEFAULT_SERVER_NAME,
        version: str = __version__,
        instructions: Optional[str] = None,
        tool_prefix: str = "",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.registry = registry
        self.executor = executor
        self.roles = roles
        self.tool_prefix = tool_prefix
        self.logger = logger or logging.getLogger(__name__)
        self.name = name
        self.formatter = ToolResultFormatter(logger=self.logger)

        self.server: Server = Server(name, version=version, instructions=instructions)
        self.server.list_tools()(self.list_tools)
        self.server.call_tool()(self.call_tool)
        self._log(f"MCP server initialized: {name} v{version}")

    def _role_tools(self) -> list[Tool]:
        if self.roles is None:
            return []
        tools = []
        for tool in self.roles.tool_definitions():
            if self.registry.get_tool(tool.name) is not None:
                self._log(f"Role tool '{tool.name}' shadows a local tool; skipping", logging.WARNING)
                continue
            tools.append(tool)
        return tools

    def exposed_tools(self) -> list[Tool]:
        return self.registry.get_all_tools() + self._role_tools()

    async def list_tools(self) -> list[types.Tool]:
        return [
            types.Tool(
                name=f"{self.tool_prefix}{tool.name}",
                description=tool.description,
                inputSchema=tool.parameters or {"type": "object", "properties": {}},
            )
            for tool in self.exposed_tools()
        ]

    def _local_name(self, name: str) -> str:
        if not name.startswith(self.tool_prefix):
            raise MCPToolError(f"Unknown tool: {name}")
        return name[len(self.tool_prefix) :]

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]]) -> list[types.TextContent]:
        local = self._local_name(name)
        arguments = arguments or {}
        self._log(f"Calling tool '{local}'", logging.DEBUG)

        if self.registry.get_tool(local) is None:
            if self.roles is not None and local in _ROLE_NAMES:
                text = await self.roles.handle(Role(local), arguments)
                return [types.TextContent(type="text", text=text)]
            raise MCPToolError(f"Unknown tool: {name}")

        result = await self.executor.execute_tool(local, arguments)
        if not result.success:
            self._log(f"Tool '{local}' failed: {result.error}", logging.WARNING)
            raise MCPToolError(self.formatter.format_result(result, name).output)
        return [types.TextContent(type="text", text=result.output or "")]

    async def serve_stdio(self) -> None:
        """Serve on stdin/stdout until the client disconnects."""
        self._log(f"Serving {len(self.exposed_tools())} tools over stdio")
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream, write_stream, self.server.create_initialization_options()
            )
        self._log("MCP client disconnected")

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

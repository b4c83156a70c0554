"""Model Context Protocol server exposing the local tools and the role tools."""

from .roles import Role, RoleSettings, RoleToolError, RoleToolHandler
from .server import DEFAULT_SERVER_NAME, AgenticMCPServer, MCPToolError

__all__ = [
    "AgenticMCPServer",
    "MCPToolError",
    "DEFAULT_SERVER_NAME",
    "Role",
    "RoleSettings",
    "RoleToolError",
    "RoleToolHandler",
]

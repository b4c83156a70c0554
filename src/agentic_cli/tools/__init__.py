"""Tool definitions, execution and result formatting."""

from .executor import ToolExecutor, ToolImplementation
from .filesystem import FileSystemTool
from .formatter import DefaultFormatter, ProviderFormatter, ToolResultFormatter
from .registry import ToolRegistry, ToolValidationResult
from .shell import ShellTool

__all__ = [
    "ToolRegistry",
    "ToolValidationResult",
    "ToolExecutor",
    "ToolImplementation",
    "ToolResultFormatter",
    "ProviderFormatter",
    "DefaultFormatter",
    "FileSystemTool",
    "ShellTool",
]

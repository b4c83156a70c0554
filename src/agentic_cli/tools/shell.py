"""
An allow-listed command tool for inspecting the project from the model.

Commands run without a shell, with the project root as working directory.
Only commands on the allow list are started, path-like arguments must stay
inside the root, and ``find`` actions that write or execute are refused.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Any, Iterable, Optional

from agentic_cli.tools.executor import ToolExecutor
from agentic_cli.tools.registry import ToolRegistry
from agentic_cli.types.tool import Tool

__all__ = ["ShellTool", "DEFAULT_SHELL_COMMANDS", "SHELL_COMMAND_DESCRIPTIONS"]

SHELL_COMMAND_DESCRIPTIONS: dict[str, str] = {
    "ls": "List directory contents, e.g. ls -l src",
    "pwd": "Print the working directory (the project root)",
    "cat": "Print file contents, e.g. cat README.md",
    "head": "Show the first lines of a file, e.g. head -n 20 app.py",
    "tail": "Show the last lines of a file, e.g. tail -n 20 app.log",
    "wc": "Count lines, words or bytes, e.g. wc -l app.py",
    "stat": "Show size, permissions and timestamps of a path",
    "file": "Guess the type of a file",
    "readlink": "Print the target of a symbolic link",
    "realpath": "Print the canonical path of a file",
    "basename": "Strip directories from a path",
    "dirname": "Strip the last component from a path",
    "find": "Search for files, e.g. find . -name '*.py' (no -exec or -delete)",
    "which": "Locate an executable on PATH",
    "grep": "Search for a pattern, e.g. grep -rn 'TODO' src",
    "cut": "Extract fields from lines, e.g. cut -d, -f1 data.csv",
    "sort": "Sort lines of a file",
    "uniq": "Report or drop repeated adjacent lines",
    "nl": "Number the lines of a file",
    "diff": "Compare two files line by line",
}

DEFAULT_SHELL_COMMANDS = tuple(SHELL_COMMAND_DESCRIPTIONS)

_FORBIDDEN_ARGS = {
    "find": {"-exec", "-execdir", "-ok", "-okdir", "-delete", "-fprint", "-fprint0", "-fprintf", "-fls"},
    "sort": {"-o", "--output"},
}

_MAX_OUTPUT_CHARS = 8000


def _clip(text: str) -> str:
    if len(text) <= _MAX_OUTPUT_CHARS:
        return text
    half = _MAX_OUTPUT_CHARS // 2
    return f"{text[:half]}\n...[truncated]...\n{text[-half:]}"


class ShellTool:
    """Runs allow-listed commands inside *base_dir*."""

    def __init__(
        self,
        base_dir: str | Path = ".",
        *,
        allowed_commands: Iterable[str] = DEFAULT_SHELL_COMMANDS,
        timeout: float = 20.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.base_dir = Path(base_dir).resolve()
        self.allowed_commands = tuple(dict.fromkeys(allowed_commands))
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def _check(self, command: str, args: list[str]) -> None:
        if command not in self.allowed_commands:
            raise PermissionError(
                f"Command '{command}' is not allowed. Allowed: {', '.join(self.allowed_commands)}"
            )
        forbidden = _FORBIDDEN_ARGS.get(command, set())
        for arg in args:
            if arg in forbidden or arg.split("=", 1)[0] in forbidden:
                raise PermissionError(f"Argument '{arg}' is not allowed for {command}")
            if arg.startswith("-"):
                continue
            if arg.startswith(("/", "~")) or ".." in Path(arg).parts:
                target = (self.base_dir / Path(arg).expanduser()).resolve()
                if target != self.base_dir and self.base_dir not in target.parents:
                    raise PermissionError(f"Access denied: '{arg}' is outside {self.base_dir}")

    async def run_command(self, command: str, args: Optional[list[str]] = None) -> dict[str, Any]:
        """
        Run *command* with *args* and return its exit code and output.

        A non-zero exit is reported in the result, not raised. Refused
        commands raise ``PermissionError``.
        """
        args = [str(a) for a in (args or [])]
        self._check(command, args)
        executable = shutil.which(command)
        if executable is None:
            raise FileNotFoundError(f"Command not found on this system: {command}")

        self.logger.info(f"shell: {command} {' '.join(args)}".rstrip())
        proc = await asyncio.create_subprocess_exec(
            executable,
            *args,
            cwd=self.base_dir,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError:
            self.logger.warning(f"shell: {command} timed out after {self.timeout}s")
            return {
                "command": command,
                "success": False,
                "code": -1,
                "stdout": "",
                "stderr": f"Timed out after {self.timeout}s",
            }
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        return {
            "command": command,
            "success": proc.returncode == 0,
            "code": proc.returncode,
            "stdout": _clip(stdout.decode("utf-8", errors="replace")),
            "stderr": _clip(stderr.decode("utf-8", errors="replace")),
        }

    # -------------------- registration ---------------------

    def tool_definition(self) -> Tool:
        listing = "; ".join(
            f"{cmd}: {SHELL_COMMAND_DESCRIPTIONS.get(cmd, 'allowed command')}"
            for cmd in self.allowed_commands
        )
        return Tool(
            "shell",
            "Run a read-only command in the project root and return its exit code, "
            f"stdout and stderr. Commands: {listing}.",
            {
                "type": "object",
                "properties": {
                    "command": {"type": "string", "enum": list(self.allowed_commands)},
                    "args": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Arguments, one per item; no shell syntax",
                    },
                },
                "required": ["command"],
            },
            side_effect_free=True,
        )

    def register(self, registry: ToolRegistry, executor: ToolExecutor) -> int:
        tool = self.tool_definition()
        if not registry.register_tool(tool):
            return 0
        executor.register_implementation(tool.name, self.run_command)
        return 1

"""
Built-in filesystem tools, sandboxed under a base directory.

Every path argument is resolved relative to ``base_dir``; a path that
resolves outside it raises ``PermissionError``, which the executor reports
to the model as a tool failure.
"""

from __future__ import annotations

import difflib
import fnmatch
import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from agentic_cli.tools.executor import ToolExecutor
from agentic_cli.tools.registry import ToolRegistry
from agentic_cli.types.tool import Tool

__all__ = ["FileSystemTool"]

_IGNORED_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv", ".mypy_cache"}


def _schema(properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


_PATH = {"type": "string", "description": "Path relative to the project root"}


class FileSystemTool:
    """File operations the model can request, confined to *base_dir*."""

    def __init__(
        self,
        base_dir: str | Path = ".",
        *,
        allow_file_overwrite: bool = False,
        max_search_results: int = 500,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.base_dir = Path(base_dir).resolve()
        self.allow_file_overwrite = allow_file_overwrite
        self.max_search_results = max_search_results
        self.logger = logger or logging.getLogger(__name__)

    # -------------------- sandbox ---------------------

    def _resolve(self, path: str) -> Path:
        target = (self.base_dir / path).resolve()
        if target != self.base_dir and self.base_dir not in target.parents:
            raise PermissionError(f"Access denied: '{path}' is outside {self.base_dir}")
        return target

    def _rel(self, path: Path) -> str:
        return path.relative_to(self.base_dir).as_posix() or "."

    # -------------------- tools ---------------------

    def read_file(self, path: str) -> str:
        p = self._resolve(path)
        if not p.is_file():
            raise FileNotFoundError(f"Not a file: {path}")
        text = p.read_text(encoding="utf-8", errors="replace")
        self.logger.info(f"read_file: '{self._rel(p)}' chars={len(text)}")
        return text

    def read_multiple_files(self, paths: list[str]) -> dict[str, Any]:
        """Read several files; a failed read is reported per file."""
        results: dict[str, Any] = {}
        for path in paths:
            try:
                results[path] = {"content": self.read_file(path)}
            except (OSError, PermissionError) as exc:
                results[path] = {"error": str(exc)}
        return results

    def write_file(self, path: str, content: str, allow_overwrite: bool = False) -> dict[str, Any]:
        p = self._resolve(path)
        existed = p.exists()
        if existed and not (allow_overwrite or self.allow_file_overwrite):
            raise FileExistsError(f"File exists and overwriting is disabled: {path}")
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
        res = {
            "path": self._rel(p),
            "bytes_written": len(content.encode("utf-8")),
            "overwrote": existed,
        }
        self.logger.info(f"write_file: {res}")
        return res

    def edit_file(
        self, path: str, edits: list[dict[str, str]], dry_run: bool = False
    ) -> dict[str, Any]:
        """Apply exact text replacements and return a unified diff."""
        p = self._resolve(path)
        if not p.is_file():
            raise FileNotFoundError(f"Not a file: {path}")
        original = p.read_text(encoding="utf-8")
        updated = original
        for edit in edits:
            old_text = edit.get("old_text", "")
            new_text = edit.get("new_text", "")
            if not old_text or old_text not in updated:
                raise ValueError(f"Text to replace not found in {path}: {old_text[:80]!r}")
            updated = updated.replace(old_text, new_text, 1)

        diff = "".join(
            difflib.unified_diff(
                original.splitlines(keepends=True),
                updated.splitlines(keepends=True),
                fromfile=f"a/{self._rel(p)}",
                tofile=f"b/{self._rel(p)}",
            )
        )
        if not dry_run:
            p.write_text(updated, encoding="utf-8")
        return {"path": self._rel(p), "applied": not dry_run, "diff": diff}

    def create_directory(self, path: str) -> str:
        p = self._resolve(path)
        p.mkdir(parents=True, exist_ok=True)
        return f"Directory ready: {self._rel(p)}"

    def list_directory(self, path: str = ".") -> str:
        p = self._resolve(path)
        if not p.is_dir():
            raise NotADirectoryError(f"Not a directory: {path}")
        lines = [
            f"{'[DIR]' if child.is_dir() else '[FILE]'} {child.name}"
            for child in sorted(p.iterdir(), key=lambda c: (not c.is_dir(), c.name))
        ]
        return "\n".join(lines)

    def get_directory_tree(self, path: str = ".", max_depth: int = 5) -> dict[str, Any]:
        p = self._resolve(path)
        if not p.is_dir():
            raise NotADirectoryError(f"Not a directory: {path}")

        def walk(node: Path, depth: int) -> dict[str, Any]:
            if not node.is_dir():
                return {"name": node.name, "type": "file"}
            children = []
            if depth < max_depth:
                children = [
                    walk(child, depth + 1)
                    for child in sorted(node.iterdir(), key=lambda c: c.name)
                    if child.name not in _IGNORED_DIRS
                ]
            return {"name": node.name, "type": "directory", "children": children}

        return walk(p, 0)

    def get_file_info(self, path: str) -> dict[str, Any]:
        p = self._resolve(path)
        st = p.stat()
        return {
            "path": self._rel(p),
            "type": "directory" if p.is_dir() else "file",
            "size": st.st_size,
            "modified": datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
            "created": datetime.fromtimestamp(st.st_ctime, tz=timezone.utc).isoformat(),
            "permissions": oct(st.st_mode & 0o777),
        }

    def move_file(self, source: str, destination: str) -> str:
        src = self._resolve(source)
        dst = self._resolve(destination)
        if not src.exists():
            raise FileNotFoundError(f"Not found: {source}")
        if dst.exists():
            raise FileExistsError(f"Destination exists: {destination}")
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(src), str(dst))
        return f"Moved {self._rel(src)} -> {self._rel(dst)}"

    def delete_file(self, path: str) -> str:
        p = self._resolve(path)
        if not p.is_file():
            raise FileNotFoundError(f"Not a file: {path}")
        p.unlink()
        self.logger.info(f"delete_file: '{self._rel(p)}'")
        return f"Deleted {self._rel(p)}"

    def find_files(
        self,
        pattern: str,
        path: str = ".",
        recursive: bool = True,
        exclude: list[str] | None = None,
    ) -> list[str]:
        """Glob for files; a bare name pattern matches case-insensitively anywhere."""
        root = self._resolve(path)
        candidates = root.rglob("*") if recursive else root.glob("*")
        needle = pattern.lower()
        out: list[str] = []
        for candidate in candidates:
            rel = self._rel(candidate)
            if any(part in _IGNORED_DIRS for part in candidate.relative_to(root).parts):
                continue
            if exclude and any(fnmatch.fnmatch(rel, ex) for ex in exclude):
                continue
            if fnmatch.fnmatch(candidate.name.lower(), needle) or fnmatch.fnmatch(rel.lower(), needle):
                out.append(rel)
        return sorted(out)

    def search_codebase(
        self,
        query: str,
        path: str = ".",
        regex: bool = False,
        case_sensitive: bool = False,
        recursive: bool = True,
    ) -> list[dict[str, Any]]:
        """Search files for *query* and return line hits."""
        root = self._resolve(path)
        flags = 0 if case_sensitive else re.IGNORECASE
        pat = re.compile(query if regex else re.escape(query), flags)
        results: list[dict[str, Any]] = []
        files = root.rglob("*") if recursive else root.glob("*")
        for file in sorted(files):
            if not file.is_file():
                continue
            if any(part in _IGNORED_DIRS for part in file.relative_to(root).parts):
                continue
            try:
                text = file.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError):
                continue
            for i, line in enumerate(text.splitlines(), 1):
                if pat.search(line):
                    results.append({"file": self._rel(file), "line": i, "text": line.rstrip()})
                    if len(results) >= self.max_search_results:
                        self.logger.info(
                            f"search_codebase: capped at {self.max_search_results} results"
                        )
                        return results
        return results

    # -------------------- registration ---------------------

    def tool_definitions(self) -> list[Tool]:
        return [
            Tool(
                "read_file",
                "Read the complete contents of a text file.",
                _schema({"path": _PATH}, ["path"]),
                side_effect_free=True,
            ),
            Tool(
                "read_multiple_files",
                "Read several files at once. Failed reads are reported per file.",
                _schema(
                    {"paths": {"type": "array", "items": {"type": "string"}}},
                    ["paths"],
                ),
                side_effect_free=True,
            ),
            Tool(
                "write_file",
                "Create a file with the given content. An existing file is "
                "overwritten when allow_overwrite is true or when overwriting is "
                "enabled for the project; otherwise the call fails.",
                _schema(
                    {
                        "path": _PATH,
                        "content": {"type": "string"},
                        "allow_overwrite": {"type": "boolean"},
                    },
                    ["path", "content"],
                ),
            ),
            Tool(
                "edit_file",
                "Replace exact text in a file. Returns a unified diff of the change.",
                _schema(
                    {
                        "path": _PATH,
                        "edits": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "old_text": {"type": "string"},
                                    "new_text": {"type": "string"},
                                },
                                "required": ["old_text", "new_text"],
                            },
                        },
                        "dry_run": {"type": "boolean"},
                    },
                    ["path", "edits"],
                ),
            ),
            Tool(
                "create_directory",
                "Create a directory, including missing parents.",
                _schema({"path": _PATH}, ["path"]),
            ),
            Tool(
                "list_directory",
                "List a directory. Entries are prefixed with [DIR] or [FILE].",
                _schema({"path": _PATH}, []),
                side_effect_free=True,
            ),
            Tool(
                "get_directory_tree",
                "Return a recursive JSON tree of files and directories.",
                _schema({"path": _PATH, "max_depth": {"type": "integer"}}, []),
                side_effect_free=True,
            ),
            Tool(
                "get_file_info",
                "Return size, timestamps, permissions and type of a path.",
                _schema({"path": _PATH}, ["path"]),
                side_effect_free=True,
            ),
            Tool(
                "move_file",
                "Move or rename a file or directory. Fails if the destination exists.",
                _schema(
                    {"source": _PATH, "destination": _PATH}, ["source", "destination"]
                ),
            ),
            Tool(
                "delete_file",
                "Delete a single file.",
                _schema({"path": _PATH}, ["path"]),
            ),
            Tool(
                "find_files",
                "Find files whose name or relative path matches a glob pattern.",
                _schema(
                    {
                        "pattern": {"type": "string"},
                        "path": _PATH,
                        "recursive": {"type": "boolean"},
                        "exclude": {"type": "array", "items": {"type": "string"}},
                    },
                    ["pattern"],
                ),
                side_effect_free=True,
            ),
            Tool(
                "search_codebase",
                "Search file contents for text or a regex. Returns file, line and text.",
                _schema(
                    {
                        "query": {"type": "string"},
                        "path": _PATH,
                        "regex": {"type": "boolean"},
                        "case_sensitive": {"type": "boolean"},
                        "recursive": {"type": "boolean"},
                    },
                    ["query"],
                ),
                side_effect_free=True,
            ),
        ]

    def register(self, registry: ToolRegistry, executor: ToolExecutor) -> int:
        """Register every definition in *registry* and its method in *executor*."""
        count = 0
        for tool in self.tool_definitions():
            if registry.register_tool(tool):
                executor.register_implementation(tool.name, getattr(self, tool.name))
                count += 1
        return count

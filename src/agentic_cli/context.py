"""Loading files and directories into prompt context."""

from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

__all__ = ["ContextSource", "ContextItem", "FileContextManager", "split_file_args"]

MAX_FILE_SIZE = 1024 * 1024  # 1 MB

_TYPES = {
    ".md": "markdown",
    ".json": "json",
    ".txt": "text",
    ".py": "python",
    ".ts": "typescript",
    ".js": "javascript",
}


@dataclass(slots=True)
class ContextSource:
    path: str | Path
    recursive: bool = False
    max_depth: int = 5
    glob_patterns: Optional[list[str]] = None


@dataclass(slots=True)
class ContextItem:
    id: str
    type: str
    source_path: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def tokens(self) -> int:
        # Rough estimate: 4 characters per token
        return len(self.content) // 4


class FileContextManager:
    """Collects files from the registered sources and renders them for a prompt."""

    def __init__(
        self,
        *,
        max_file_size: int = MAX_FILE_SIZE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.max_file_size = max_file_size
        self.logger = logger or logging.getLogger(__name__)
        self._sources: list[ContextSource] = []
        self._items: list[ContextItem] = []

    def add_source(self, source: ContextSource) -> list[ContextItem]:
        """Register *source* and load its files immediately."""
        self._sources.append(source)
        items = self._load_source(source)
        self._items.extend(items)
        return items

    def load_context(self) -> list[ContextItem]:
        """Reload every registered source from disk."""
        self._items = []
        for source in self._sources:
            self._items.extend(self._load_source(source))
        return self._items

    def get_context_items(self) -> list[ContextItem]:
        return list(self._items)

    def get_context_item_by_id(self, item_id: str) -> Optional[ContextItem]:
        return next((item for item in self._items if item.id == item_id), None)

    def clear_context(self) -> None:
        self._sources = []
        self._items = []

    def get_total_tokens(self) -> int:
        return sum(item.tokens for item in self._items)

    def render(self) -> str:
        """Render the loaded files as ``--- File: <path> ---`` blocks."""
        return "\n\n".join(
            f"--- File: {item.source_path} ---\n{item.content}" for item in self._items
        )

    # -------------------- loading ---------------------

    def _load_source(self, source: ContextSource) -> list[ContextItem]:
        path = Path(source.path)
        if not path.exists():
            raise FileNotFoundError(f"Context path does not exist: {path}")
        if path.is_dir():
            return self._load_directory(path, source)
        item = self._load_file(path)
        return [item] if item else []

    def _load_directory(self, root: Path, source: ContextSource) -> list[ContextItem]:
        patterns = source.glob_patterns or ["*"]
        items: list[ContextItem] = []

        def walk(directory: Path, depth: int) -> None:
            if depth > source.max_depth:
                return
            for entry in sorted(directory.iterdir(), key=lambda p: p.name):
                if entry.is_dir():
                    if source.recursive and not entry.name.startswith("."):
                        walk(entry, depth + 1)
                elif any(fnmatch.fnmatch(entry.name, pattern) for pattern in patterns):
                    item = self._load_file(entry)
                    if item:
                        items.append(item)

        walk(root, 0)
        return items

    def _load_file(self, path: Path) -> Optional[ContextItem]:
        size = path.stat().st_size
        if size > self.max_file_size:
            self.logger.warning(
                f"Skipping {path}: {size} bytes exceeds the {self.max_file_size} byte limit"
            )
            return None
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            self.logger.warning(f"Skipping {path}: not a UTF-8 text file")
            return None
        return ContextItem(
            id=str(path),
            type=_TYPES.get(path.suffix.lower(), "unknown"),
            source_path=str(path),
            content=content,
            metadata={"extension": path.suffix, "size": size},
        )


def split_file_args(args: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split command arguments into existing paths and prompt words."""
    paths: list[str] = []
    words: list[str] = []
    for arg in args:
        (paths if os.path.exists(arg) else words).append(arg)
    return paths, words

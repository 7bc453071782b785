"""Workspace root and contained file access."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

SKIPPED_DIRS = {"node_modules", "vendor", "__pycache__"}


class WorkspaceError(ValueError):
    """Raised when a path cannot be used inside the workspace."""


@dataclass
class Workspace:
    """Filesystem view rooted at the project directory."""

    root: Path

    def __post_init__(self) -> None:
        self.root = Path(self.root).resolve()

    def resolve(self, relative: str | Path) -> Path:
        """Return the absolute path for ``relative``, refusing paths outside the root."""
        candidate = (self.root / relative).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise WorkspaceError(f"Path '{relative}' is outside the workspace") from exc
        return candidate

    def relative(self, path: str | Path) -> str:
        return self.resolve(path).relative_to(self.root).as_posix()

    def read(self, path: str | Path) -> bytes:
        return self.resolve(path).read_bytes()

    def read_text(self, path: str | Path) -> str:
        return self.resolve(path).read_text(encoding="utf-8")

    def write(self, path: str | Path, data: bytes) -> Path:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target

    def write_text(self, path: str | Path, content: str) -> Path:
        return self.write(path, content.encode("utf-8"))

    def exists(self, path: str | Path) -> bool:
        return self.resolve(path).exists()

    def iter_files(self, start: str | Path = ".") -> Iterator[Path]:
        """Walk non-hidden files under ``start``, skipping dependency and cache directories."""
        for current, dirs, files in os.walk(self.resolve(start)):
            dirs[:] = sorted(d for d in dirs if not d.startswith(".") and d not in SKIPPED_DIRS)
            for name in sorted(files):
                if not name.startswith("."):
                    yield Path(current) / name


__all__ = ["Workspace", "WorkspaceError"]

"""File read/write tool bound to the workspace."""
from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from ai_copilot.workspace import Workspace, WorkspaceError

from . import names
from .base import Tool, ToolExecutionError, operation_schema

BeforeWrite = Callable[[str], None]


class FileSystemTool(Tool):
    """Read, write and list files inside the workspace.

    ``before_write`` is called with the relative path before any write so the
    caller can snapshot the file first; if it raises, nothing is written.
    """

    name = names.FILESYSTEM
    description = (
        "Read or write workspace files. "
        'Args: {"operation": "read|write|list|mkdir", "path": "<relative path>", "content": "<text for write>"}'
    )
    schema = operation_schema(
        ["read", "write", "list", "mkdir"],
        path={"type": "string"},
        content={"type": "string"},
    )
    schema["required"] = ["operation", "path"]

    def __init__(self, workspace: Workspace, before_write: Optional[BeforeWrite] = None) -> None:
        self.workspace = workspace
        self.before_write = before_write

    def execute(self, args: Mapping[str, Any]) -> str:
        operation = args["operation"]
        path = args["path"]
        try:
            if operation == "read":
                return self._read(path)
            if operation == "write":
                return self._write(path, args.get("content"))
            if operation == "list":
                return self._list(path)
            return self._mkdir(path)
        except WorkspaceError as exc:
            raise ToolExecutionError(str(exc)) from exc

    def _read(self, path: str) -> str:
        target = self.workspace.resolve(path)
        if not target.is_file():
            raise ToolExecutionError(f"File not found: {path}")
        try:
            return target.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ToolExecutionError(f"{path} is not a text file") from exc

    def _write(self, path: str, content: Optional[str]) -> str:
        if content is None:
            raise ToolExecutionError("write requires content")
        relative = self.workspace.relative(path)
        if self.before_write is not None:
            self.before_write(relative)
        self.workspace.write_text(relative, content)
        return f"Wrote {len(content.encode('utf-8'))} bytes to {relative}"

    def _list(self, path: str) -> str:
        target = self.workspace.resolve(path)
        if not target.is_dir():
            raise ToolExecutionError(f"Not a directory: {path}")
        entries = []
        for child in sorted(target.iterdir()):
            if child.name.startswith("."):
                continue
            entries.append(child.name + ("/" if child.is_dir() else ""))
        return "\n".join(entries) if entries else "(empty)"

    def _mkdir(self, path: str) -> str:
        target = self.workspace.resolve(path)
        target.mkdir(parents=True, exist_ok=True)
        return f"Created directory {self.workspace.relative(target)}"


__all__ = ["FileSystemTool"]

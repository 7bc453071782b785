"""Substring search over workspace files."""
from __future__ import annotations

import fnmatch
from typing import Any, List, Mapping

from ai_copilot.workspace import Workspace, WorkspaceError

from . import names
from .base import Tool, ToolExecutionError

MAX_RESULTS = 50
NO_MATCHES = "No matches found"


class GrepSearchTool(Tool):
    name = names.GREP_SEARCH
    description = (
        "Search workspace files for a substring. "
        'Args: {"pattern": "<text or . to list files>", "include": "*.py", "exclude": "*.min.js", '
        '"case_sensitive": false, "depth": 2, "path": "<directory to search, default .>"}'
    )
    schema = {
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "minLength": 1},
            "include": {"type": "string"},
            "exclude": {"type": "string"},
            "case_sensitive": {"type": "boolean"},
            "depth": {"type": "integer", "minimum": 0},
            "path": {"type": "string"},
        },
        "required": ["pattern"],
    }

    def __init__(self, workspace: Workspace, max_results: int = MAX_RESULTS) -> None:
        self.workspace = workspace
        self.max_results = max_results

    def execute(self, args: Mapping[str, Any]) -> str:
        pattern = args["pattern"]
        include = args.get("include")
        exclude = args.get("exclude")
        case_sensitive = bool(args.get("case_sensitive", False))
        depth = args.get("depth") or 0
        needle = pattern if case_sensitive else pattern.lower()
        start = args.get("path") or "."
        try:
            base = self.workspace.resolve(start)
        except WorkspaceError as exc:
            raise ToolExecutionError(str(exc)) from exc
        if not base.is_dir():
            raise ToolExecutionError(f"Not a directory: {start}")

        results: List[str] = []
        for path in self.workspace.iter_files(base):
            relative = path.relative_to(self.workspace.root)
            if depth and len(path.relative_to(base).parts) - 1 > depth:
                continue
            if include and not fnmatch.fnmatch(path.name, include):
                continue
            if exclude and fnmatch.fnmatch(path.name, exclude):
                continue
            if pattern == ".":
                results.append(relative.as_posix())
            else:
                results.extend(self._search_file(path, relative.as_posix(), needle, case_sensitive))
            if len(results) >= self.max_results:
                break

        if not results:
            return NO_MATCHES
        return "\n".join(results[: self.max_results])

    def _search_file(self, path, relative: str, needle: str, case_sensitive: bool) -> List[str]:
        matches: List[str] = []
        try:
            with path.open("r", encoding="utf-8", errors="ignore") as handle:
                for number, line in enumerate(handle, start=1):
                    haystack = line if case_sensitive else line.lower()
                    if needle in haystack:
                        matches.append(f"{relative}:{number}:{line.rstrip()}")
                        if len(matches) >= self.max_results:
                            break
        except OSError:
            return []
        return matches


__all__ = ["GrepSearchTool", "MAX_RESULTS", "NO_MATCHES"]

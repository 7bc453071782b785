"""Git tool exposing the version-control operations the agent relies on."""
from __future__ import annotations

from typing import Any, Mapping

from ai_copilot import git_tools
from ai_copilot.workspace import Workspace

from . import names
from .base import Tool, ToolExecutionError, operation_schema


class GitTool(Tool):
    name = names.GIT
    description = (
        "Run git operations in the workspace. "
        'Args: {"operation": "diff|status|add|commit|reset", "message": "<commit message>", "paths": ["..."]}'
    )
    schema = operation_schema(
        ["diff", "status", "add", "commit", "reset"],
        message={"type": "string"},
        paths={"type": "array", "items": {"type": "string"}},
    )

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    def execute(self, args: Mapping[str, Any]) -> str:
        root = self.workspace.root
        operation = args["operation"]
        try:
            if operation == "diff":
                return git_tools.describe_changes(root)
            if operation == "status":
                entries = git_tools.status_entries(root)
                if not entries:
                    return "Working tree clean"
                return "\n".join(f"{entry.code} {entry.path}" for entry in entries)
            if operation == "add":
                paths = [self.workspace.relative(path) for path in args.get("paths") or ["."]]
                git_tools.stage(root, paths)
                return f"Staged {', '.join(paths)}"
            if operation == "commit":
                return git_tools.commit_all(root, args.get("message")) or "Committed"
            return git_tools.reset_hard(root) or "Reset working tree"
        except git_tools.GitIntegrationError as exc:
            raise ToolExecutionError(str(exc)) from exc


__all__ = ["GitTool"]

"""``@`` context shortcuts and ``/!`` shell passthrough for code mode.

Lines typed at the code prompt may pull workspace material into the
conversation before (or instead of) asking a question::

    @file main.go what does main do
    @folder depth=2 internal/ summarise this package
    @codebase depth=2 where is the config loaded
    @git diff is this safe to commit
    @internal/api/          (bare paths work too)

Each shortcut is resolved through the registered tools so the same
validation and error handling apply as for model-issued tool calls.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from ai_copilot.tools import names
from ai_copilot.tools.registry import ToolRegistry
from ai_copilot.workspace import Workspace, WorkspaceError

CONTEXT_PREFIX = "@"
SHELL_PREFIX = "/!"
GIT_CONTEXT_COMMANDS = ("diff", "status")
DEFAULT_DEPTH = 1
CODEBASE_QUESTION = "Please answer the following question based on the codebase context provided above."
CODEBASE_DEFAULT_PROMPT = (
    "Analyze the codebase structure above and describe its main components and how they fit together."
)

_DEPTH = re.compile(r"^depth=(\d+)$")


class ContextRequestError(ValueError):
    """Raised when a context shortcut cannot be parsed or resolved."""


@dataclass
class ContextRequest:
    type: str
    target: str = ""
    question: str = ""
    depth: int = DEFAULT_DEPTH

    def describe(self) -> str:
        if self.type == "codebase":
            return f"codebase (depth {self.depth})"
        return self.target


def is_context_request(text: str) -> bool:
    return text.strip().startswith(CONTEXT_PREFIX)


def shell_command(text: str) -> Optional[str]:
    """Return the command of a ``/!`` line (possibly empty), or ``None`` for other input."""
    stripped = text.strip()
    if not stripped.startswith(SHELL_PREFIX):
        return None
    return stripped[len(SHELL_PREFIX):].strip()


def _take_depth(words: List[str]) -> int:
    if words:
        match = _DEPTH.match(words[0])
        if match:
            words.pop(0)
            return int(match.group(1))
    return DEFAULT_DEPTH


def parse_context_request(text: str, workspace: Workspace) -> ContextRequest:
    """Parse an ``@`` line into a :class:`ContextRequest`."""
    stripped = text.strip()
    if not stripped.startswith(CONTEXT_PREFIX):
        raise ContextRequestError(f"Context requests start with {CONTEXT_PREFIX}")
    words = stripped[len(CONTEXT_PREFIX):].split()
    if not words:
        raise ContextRequestError("Empty context request")

    kind = words.pop(0)
    if kind == "web":
        raise ContextRequestError("Web context is not supported")
    if kind == "git":
        if not words:
            raise ContextRequestError("Usage: @git <diff|status> [question]")
        command = words.pop(0)
        if command not in GIT_CONTEXT_COMMANDS:
            raise ContextRequestError(
                f"Unsupported git context command: {command} (use {' or '.join(GIT_CONTEXT_COMMANDS)})"
            )
        return ContextRequest(type="git", target=command, question=" ".join(words))
    if kind == "codebase":
        depth = _take_depth(words)
        return ContextRequest(type="codebase", question=" ".join(words), depth=depth)
    if kind in ("file", "folder"):
        depth = _take_depth(words)
        if not words:
            raise ContextRequestError(f"Usage: @{kind} [depth=N] <path> [question]")
        target = words.pop(0)
        return ContextRequest(type=kind, target=target, question=" ".join(words), depth=depth)

    # Anything else is a path.
    target = kind
    try:
        is_dir = target.endswith("/") or workspace.resolve(target).is_dir()
    except WorkspaceError as exc:
        raise ContextRequestError(str(exc)) from exc
    depth = _take_depth(words)
    return ContextRequest(
        type="folder" if is_dir else "file",
        target=target,
        question=" ".join(words),
        depth=depth,
    )


def resolve_context(request: ContextRequest, registry: ToolRegistry) -> str:
    """Run the tool behind ``request`` and return the text to add to the conversation."""
    if request.type == "file":
        name, args = names.FILESYSTEM, {"operation": "read", "path": request.target}
    elif request.type == "folder":
        name, args = names.GREP_SEARCH, {"pattern": ".", "path": request.target, "depth": request.depth}
    elif request.type == "codebase":
        name, args = names.GREP_SEARCH, {"pattern": ".", "depth": request.depth}
    elif request.type == "git":
        name, args = names.GIT, {"operation": request.target}
    else:
        raise ContextRequestError(f"Unknown context type: {request.type}")

    call = registry.bind(name, args)
    if call is None:
        raise ContextRequestError(f"Tool {name} is not available")
    output = call.execute()
    if call.failed:
        raise ContextRequestError(output)

    if request.type == "file":
        return f"File: {request.target}\n\n{output}"
    if request.type == "folder":
        return f"Folder: {request.target} (depth {request.depth})\n\n{output}"
    if request.type == "codebase":
        return f"Codebase files (depth {request.depth}):\n\n{output}"
    return f"git {request.target}:\n\n{output}"


__all__ = [
    "CODEBASE_DEFAULT_PROMPT",
    "CODEBASE_QUESTION",
    "ContextRequest",
    "ContextRequestError",
    "is_context_request",
    "parse_context_request",
    "resolve_context",
    "shell_command",
]

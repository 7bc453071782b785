"""Registry wiring for the built-in tools."""
from __future__ import annotations

from typing import Optional

from ai_copilot.workspace import Workspace

from .filesystem import BeforeWrite, FileSystemTool
from .git import GitTool
from .grep import GrepSearchTool
from .language import LanguageDetectorTool
from .linter import LinterTool
from .registry import ToolRegistry
from .terminal import RunTerminalTool


def build_default_registry(
    workspace: Workspace,
    *,
    before_write: Optional[BeforeWrite] = None,
    command_timeout: Optional[float] = None,
) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(FileSystemTool(workspace, before_write=before_write))
    registry.register(GitTool(workspace))
    registry.register(GrepSearchTool(workspace))
    registry.register(RunTerminalTool(workspace, timeout=command_timeout))
    registry.register(LinterTool(workspace, timeout=command_timeout))
    registry.register(LanguageDetectorTool(workspace))
    return registry


__all__ = ["build_default_registry"]

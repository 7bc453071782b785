"""Run shell commands in the workspace."""
from __future__ import annotations

import shlex
import subprocess
from typing import Any, Mapping, Optional

from ai_copilot.utils.logger import get_logger
from ai_copilot.workspace import Workspace

from . import names
from .base import Tool, ToolExecutionError

LOGGER = get_logger(__name__)


class RunTerminalTool(Tool):
    name = names.RUN_TERMINAL
    description = (
        "Execute a command in the workspace. "
        'Args: {"command": "<command line>", "background": false}'
    )
    schema = {
        "type": "object",
        "properties": {
            "command": {"type": "string", "minLength": 1},
            "background": {"type": "boolean"},
        },
        "required": ["command"],
    }

    def __init__(self, workspace: Workspace, timeout: Optional[float] = None) -> None:
        self.workspace = workspace
        self.timeout = timeout

    def execute(self, args: Mapping[str, Any]) -> str:
        command = args["command"]
        try:
            argv = shlex.split(command)
        except ValueError as exc:
            raise ToolExecutionError(f"Cannot parse command: {exc}") from exc
        if not argv:
            raise ToolExecutionError("empty command")

        LOGGER.info("Running command: %s", command)
        if args.get("background"):
            try:
                subprocess.Popen(
                    argv,
                    cwd=str(self.workspace.root),
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            except OSError as exc:
                raise ToolExecutionError(f"failed to start command: {exc}") from exc
            return f"Started command in background: {command}"

        try:
            process = subprocess.run(
                argv,
                cwd=str(self.workspace.root),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolExecutionError(f"command timed out after {self.timeout}s: {command}") from exc
        except OSError as exc:
            raise ToolExecutionError(f"failed to run command: {exc}") from exc

        output = process.stdout + process.stderr
        if process.returncode != 0:
            raise ToolExecutionError(f"command failed with exit code {process.returncode}\nOutput: {output}")
        return output


__all__ = ["RunTerminalTool"]

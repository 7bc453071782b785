"""Language-aware lint check and fix tool."""
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ai_copilot.workspace import Workspace

from . import names
from .base import Tool, ToolExecutionError, operation_schema

NO_ISSUES = "No issues found"


@dataclass(frozen=True)
class LinterCommands:
    check: Sequence[str]
    fix: Sequence[Sequence[str]]


LINTERS: Dict[str, LinterCommands] = {
    ".py": LinterCommands(check=("ruff", "check"), fix=(("ruff", "check", "--fix"), ("ruff", "format"))),
    ".go": LinterCommands(
        check=("golangci-lint", "run", "--out-format=line-number"),
        fix=(("gofmt", "-w"), ("golangci-lint", "run", "--fix")),
    ),
    ".js": LinterCommands(check=("eslint",), fix=(("eslint", "--fix"),)),
    ".ts": LinterCommands(check=("eslint",), fix=(("eslint", "--fix"),)),
}


class LinterTool(Tool):
    name = names.LINTER
    description = 'Check and fix code issues with linters. Args: {"operation": "check|fix", "path": "<file>"}'
    schema = operation_schema(["check", "fix"], path={"type": "string"})

    def __init__(self, workspace: Workspace, timeout: Optional[float] = None) -> None:
        self.workspace = workspace
        self.timeout = timeout

    def execute(self, args: Mapping[str, Any]) -> str:
        path = args.get("path") or "."
        commands = LINTERS.get(PurePath(path).suffix.lower())
        if commands is None:
            raise ToolExecutionError(f"no linter available for {path}")
        target = str(self.workspace.resolve(path))

        if args["operation"] == "check":
            returncode, output = self._run([*commands.check, target])
            # a non-zero exit means findings, not a tool failure
            return NO_ISSUES if returncode == 0 else output

        for command in commands.fix:
            returncode, output = self._run([*command, target])
            if returncode != 0:
                raise ToolExecutionError(f"{command[0]} fix failed:\n{output}")
        return "Fixed code style issues"

    def _run(self, argv: List[str]) -> tuple[int, str]:
        try:
            process = subprocess.run(
                argv,
                cwd=str(self.workspace.root),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise ToolExecutionError(f"{argv[0]} is not installed") from exc
        except subprocess.TimeoutExpired as exc:
            raise ToolExecutionError(f"{argv[0]} timed out") from exc
        return process.returncode, (process.stdout + process.stderr).strip()


__all__ = ["LinterTool", "LINTERS", "NO_ISSUES"]

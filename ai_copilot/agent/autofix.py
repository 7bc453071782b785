"""Lint-driven automatic fix workflow."""
from __future__ import annotations

import shlex
from dataclasses import dataclass
from typing import List

from ai_copilot import git_tools
from ai_copilot.changes.models import Change
from ai_copilot.changes.tracker import BackupError, ChangeTracker
from ai_copilot.providers.llm import LLMError
from ai_copilot.session.chat import ChatClient
from ai_copilot.tools import names
from ai_copilot.tools.linter import NO_ISSUES
from ai_copilot.tools.registry import ToolRegistry
from ai_copilot.utils.logger import get_logger
from ai_copilot.workspace import Workspace

from . import prompts
from .engine import Publish

LOGGER = get_logger(__name__)

SOURCE_EXTENSIONS = {
    ".go", ".py", ".js", ".ts", ".jsx", ".tsx", ".java", ".cpp", ".c", ".h",
    ".rb", ".php", ".rs", ".swift", ".kt", ".scala", ".cs",
}

AUTOFIX_KEYWORDS = (
    "fix code",
    "fix issues",
    "fix bugs",
    "repair code",
    "auto fix",
    "autofix",
    "fix errors",
    "修复代码",
    "修复问题",
    "修复错误",
    "自动修复",
)


def is_autofix_request(prompt: str) -> bool:
    lowered = prompt.strip().lower()
    return any(keyword in lowered for keyword in AUTOFIX_KEYWORDS)


@dataclass
class FileIssues:
    path: str
    content: str
    issues: str


class AutoFixer:
    """Lint every source file and ask the model to rewrite the ones with findings."""

    def __init__(
        self,
        chat: ChatClient,
        registry: ToolRegistry,
        tracker: ChangeTracker,
        workspace: Workspace,
    ) -> None:
        self.chat = chat
        self.registry = registry
        self.tracker = tracker
        self.workspace = workspace

    def source_files(self) -> List[str]:
        return [
            path.relative_to(self.workspace.root).as_posix()
            for path in self.workspace.iter_files()
            if path.suffix.lower() in SOURCE_EXTENSIONS
        ]

    def run(self, publish: Publish, changes: List[Change]) -> None:
        publish("Starting automatic code analysis and fix...\n")

        publish("\nStep 1: Detecting programming languages...\n")
        detector = self.registry.bind(names.LANGUAGE_DETECTOR, {})
        if detector is not None:
            publish(detector.execute() + "\n")

        publish("\nStep 2: Scanning for source files...\n")
        files = self.source_files()
        publish(f"Found {len(files)} source files\n")

        publish("\nStep 3: Analyzing files for issues...\n")
        flagged = self._collect_issues(files, publish)

        if not flagged:
            publish("\nNo issues found in any files!\n")
            return
        publish(f"\nStep 4: Fixing issues in {len(flagged)} files...\n")
        for item in flagged:
            self._fix(item, publish, changes)

    def _collect_issues(self, files: List[str], publish: Publish) -> List[FileIssues]:
        flagged: List[FileIssues] = []
        for path in files:
            publish(f"\nChecking {path}...\n")
            check = self.registry.bind(names.LINTER, {"operation": "check", "path": path})
            if check is None:
                break
            issues = check.execute()
            if check.failed:
                publish(f"Warning: Failed to check file: {issues}\n", kind="tool_result")
                continue
            if issues == NO_ISSUES:
                publish(f"{NO_ISSUES}\n")
                continue
            try:
                content = self.workspace.read_text(path)
            except (OSError, UnicodeDecodeError) as exc:
                publish(f"Warning: Failed to read file: {exc}\n", kind="tool_result")
                continue
            flagged.append(FileIssues(path=path, content=content, issues=issues))
            publish(f"Found issues:\n{issues}\n")
        return flagged

    def _fix(self, item: FileIssues, publish: Publish, changes: List[Change]) -> None:
        publish(f"\nFixing {item.path}...\n")
        try:
            change = self.tracker.track(item.path, "automatic lint fix")
        except BackupError as exc:
            publish(f"Warning: Failed to create backup: {exc}\n", kind="tool_result")
            return
        changes.append(change)
        publish("Created backup successfully\n")

        try:
            fixed = self.chat.send(prompts.fix_prompt(item.path, item.content, item.issues))
        except LLMError as exc:
            publish(f"Error generating fix: {exc}\n", kind="error")
            return

        write = self.registry.bind(
            names.FILESYSTEM,
            {"operation": "write", "path": item.path, "content": git_tools.strip_code_fences(fixed)},
        )
        if write is None:
            return
        result = write.execute()
        if write.failed:
            publish(f"Error applying fix: {result}\n", kind="tool_result")
            return

        verify = self.registry.bind(names.LINTER, {"operation": "check", "path": item.path})
        if verify is not None:
            outcome = verify.execute()
            if verify.failed:
                publish(f"Warning: Failed to verify fix: {outcome}\n", kind="tool_result")
            elif outcome == NO_ISSUES:
                publish("Fix successful - no issues remaining\n")
            else:
                publish(f"Some issues remain:\n{outcome}\n")

        if item.path.endswith(".go"):
            formatter = self.registry.bind(names.RUN_TERMINAL, {"command": f"gofmt -w {shlex.quote(item.path)}"})
            if formatter is not None:
                formatted = formatter.execute()
                if formatter.failed:
                    publish(f"Warning: Failed to format file: {formatted}\n", kind="tool_result")
                else:
                    publish("Formatted Go code\n")


__all__ = ["AutoFixer", "AUTOFIX_KEYWORDS", "SOURCE_EXTENSIONS", "is_autofix_request"]

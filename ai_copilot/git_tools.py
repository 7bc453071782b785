"""Git integration helpers for the copilot."""
from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from .utils.logger import get_logger

LOGGER = get_logger(__name__)

DEFAULT_COMMIT_MESSAGE = "Auto commit by ai-copilot"

_STATUS_LABELS = {
    "M ": "Modified",
    " M": "Modified (unstaged)",
    "MM": "Modified",
    "A ": "Added",
    "AM": "Added",
    "D ": "Deleted",
    " D": "Deleted (unstaged)",
    "R ": "Renamed",
    "C ": "Copied",
    "??": "Untracked",
}


class GitIntegrationError(RuntimeError):
    """Raised when git integration helpers encounter an error."""


@dataclass(frozen=True)
class StatusEntry:
    """One line of ``git status --porcelain``."""

    code: str
    path: str

    @property
    def untracked(self) -> bool:
        return self.code == "??"

    @property
    def label(self) -> str:
        return _STATUS_LABELS.get(self.code, self.code.strip() or "Changed")


def _run_git(args: Sequence[str], repo_root: Path, check: bool = True) -> subprocess.CompletedProcess[str]:
    """Run a git command within the repository and return the completed process."""
    try:
        process = subprocess.run(
            ["git", *args],
            cwd=str(repo_root),
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        raise GitIntegrationError(f"git {' '.join(args)} could not start: {exc}") from exc
    if check and process.returncode != 0:
        message = process.stderr.strip() or process.stdout.strip() or "Unknown git error"
        raise GitIntegrationError(f"git {' '.join(args)} failed: {message}")
    return process


def is_git_repo(repo_root: Path) -> bool:
    return _run_git(["rev-parse", "--is-inside-work-tree"], repo_root, check=False).returncode == 0


def status_entries(repo_root: Path) -> List[StatusEntry]:
    """Parse ``git status --porcelain`` into entries."""
    process = _run_git(["status", "--porcelain", "--untracked-files=all"], repo_root)
    entries: List[StatusEntry] = []
    for line in process.stdout.splitlines():
        if len(line) < 4:
            continue
        path = line[3:].strip()
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        entries.append(StatusEntry(code=line[:2], path=path.strip('"')))
    return entries


def describe_changes(repo_root: Path) -> str:
    """Return a labelled file list followed by staged and unstaged diffs.

    Untracked files are listed with their content since ``git diff`` does not
    cover them.
    """
    entries = status_entries(repo_root)
    if not entries:
        return "No changes detected"

    sections: List[str] = ["Changed files:"]
    width = max(len(entry.label) for entry in entries) + 1
    for entry in entries:
        sections.append(f"  {(entry.label + ':').ljust(width + 1)} {entry.path}")

    staged = _run_git(["diff", "--cached"], repo_root).stdout
    unstaged = _run_git(["diff"], repo_root).stdout
    if staged.strip():
        sections.extend(["", "Staged changes:", staged.rstrip("\n")])
    if unstaged.strip():
        sections.extend(["", "Unstaged changes:", unstaged.rstrip("\n")])
    for entry in entries:
        if not entry.untracked:
            continue
        target = repo_root / entry.path
        try:
            content = target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        sections.extend(["", f"New file: {entry.path}", content.rstrip("\n")])
    return "\n".join(sections) + "\n"


def stage(repo_root: Path, paths: Sequence[str] = (".",)) -> None:
    _run_git(["add", "--", *paths], repo_root)


def commit_all(repo_root: Path, message: str | None = None) -> str:
    """Stage everything and commit; returns git's summary output."""
    stage(repo_root)
    process = _run_git(["commit", "-m", message or DEFAULT_COMMIT_MESSAGE], repo_root)
    LOGGER.info("Committed workspace changes: %s", message or DEFAULT_COMMIT_MESSAGE)
    return process.stdout


def reset_hard(repo_root: Path) -> str:
    """Discard every uncommitted change to tracked files."""
    process = _run_git(["reset", "--hard", "HEAD"], repo_root)
    LOGGER.info("Reset working tree in %s", repo_root)
    return process.stdout


def unstage(repo_root: Path, paths: Sequence[str]) -> None:
    """Drop ``paths`` from the index, keeping the working tree."""
    _run_git(["reset", "-q", "--", *paths], repo_root)


_FENCE_PATTERN = re.compile(r"^```[\w.+-]*[ \t]*\n(.*?)```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if present."""
    stripped = text.strip()
    match = _FENCE_PATTERN.match(stripped)
    if match:
        return match.group(1)
    return text


__all__ = [
    "GitIntegrationError",
    "StatusEntry",
    "is_git_repo",
    "status_entries",
    "describe_changes",
    "stage",
    "commit_all",
    "reset_hard",
    "unstage",
    "strip_code_fences",
]

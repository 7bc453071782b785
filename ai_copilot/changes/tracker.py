"""Pre-mutation snapshots with restore, discard and best-effort rollback."""
from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Tuple

from ai_copilot import git_tools
from ai_copilot.utils.logger import get_logger
from ai_copilot.workspace import Workspace, WorkspaceError

from .models import Change, ChangeStatus

LOGGER = get_logger(__name__)

# Marks a file that did not exist when the snapshot was taken.
ABSENT_SUFFIX = ".absent"


class BackupError(RuntimeError):
    """Raised when a file cannot be snapshotted or restored."""


@dataclass
class RollbackReport:
    """Outcome of restoring a set of changes."""

    restored: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        lines = [f"Restored {len(self.restored)} file(s)"]
        if self.skipped:
            lines.append(f"Skipped {len(self.skipped)} change(s) without backup")
        for path, message in self.errors:
            lines.append(f"Failed to restore {path}: {message}")
        return "\n".join(lines)


class RollbackError(RuntimeError):
    """Raised when one or more files could not be restored."""

    def __init__(self, report: RollbackReport) -> None:
        super().__init__(report.summary())
        self.report = report


class ChangeTracker:
    """Snapshot files under a session directory so they can be restored later.

    Snapshots mirror the workspace-relative path below
    ``<backup_root>/<YYYYMMDD_HHMMSS>/``.
    """

    def __init__(
        self,
        workspace: Workspace,
        backup_root: Path,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.workspace = workspace
        self.backup_root = Path(backup_root)
        self.session_dir = self.backup_root / clock().strftime("%Y%m%d_%H%M%S")

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def backup(self, file_path: str | Path) -> Path:
        """Copy the current bytes of ``file_path`` and return the copy's path."""
        try:
            relative = self.workspace.relative(file_path)
            source = self.workspace.resolve(relative)
        except WorkspaceError as exc:
            raise BackupError(str(exc)) from exc
        if source.exists() and not source.is_file():
            raise BackupError(f"Cannot back up {relative}: not a regular file")

        if source.exists():
            target = _unique(self.session_dir / relative)
        else:
            target = _unique(self.session_dir / relative, ABSENT_SUFFIX)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_ignored()
            if source.exists():
                shutil.copy2(source, target)
            else:
                target.touch()
        except OSError as exc:
            raise BackupError(f"Cannot back up {relative}: {exc}") from exc
        LOGGER.debug("Backed up %s to %s", relative, target)
        return target

    def restore(self, file_path: str | Path, backup_path: str | Path) -> None:
        """Put the snapshot back in place, then delete the snapshot."""
        backup = Path(backup_path)
        if not backup.is_file():
            raise BackupError(f"Backup not found: {backup}")
        try:
            target = self.workspace.resolve(file_path)
        except WorkspaceError as exc:
            raise BackupError(str(exc)) from exc
        try:
            if backup.name.endswith(ABSENT_SUFFIX):
                target.unlink(missing_ok=True)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(backup.read_bytes())
            backup.unlink()
        except OSError as exc:
            raise BackupError(f"Cannot restore {file_path}: {exc}") from exc
        self._prune(backup.parent)
        LOGGER.debug("Restored %s from %s", file_path, backup)

    def discard(self, backup_path: str | Path) -> None:
        backup = Path(backup_path)
        try:
            backup.unlink(missing_ok=True)
        except OSError as exc:
            raise BackupError(f"Cannot discard backup {backup}: {exc}") from exc
        self._prune(backup.parent)

    # ------------------------------------------------------------------
    # Change sets
    # ------------------------------------------------------------------

    def track(self, file_path: str | Path, description: str = "") -> Change:
        """Snapshot ``file_path`` and return the populated Change."""
        relative = self.workspace.relative(file_path)
        status: ChangeStatus = "modified" if self.workspace.exists(relative) else "added"
        backup_path = self.backup(relative)
        return Change(file_path=relative, description=description, backup_path=backup_path, status=status)

    def backup_changed_files(self) -> List[Change]:
        """Snapshot every tracked file git reports as modified or added.

        Untracked files and deletions are left to ``git reset --hard``.
        """
        changes: List[Change] = []
        for entry in git_tools.status_entries(self.workspace.root):
            if entry.untracked or "D" in entry.code:
                continue
            if not self.workspace.resolve(entry.path).is_file():
                continue
            status: ChangeStatus = "added" if "A" in entry.code else "modified"
            changes.append(
                Change(
                    file_path=entry.path,
                    description=f"pre-task snapshot ({entry.label.lower()})",
                    backup_path=self.backup(entry.path),
                    status=status,
                )
            )
        return changes

    def rollback(self, changes: Iterable[Change]) -> RollbackReport:
        """Restore every change with a backup, newest first; keep going past failures."""
        report = RollbackReport()
        for change in reversed(list(changes)):
            if change.backup_path is None:
                report.skipped.append(change.file_path)
                continue
            try:
                self.restore(change.file_path, change.backup_path)
            except BackupError as exc:
                LOGGER.error("Rollback of %s failed: %s", change.file_path, exc)
                report.errors.append((change.file_path, str(exc)))
                continue
            change.backup_path = None
            report.restored.append(change.file_path)
        return report

    def discard_all(self, changes: Iterable[Change]) -> None:
        for change in changes:
            if change.backup_path is not None:
                self.discard(change.backup_path)
                change.backup_path = None

    def cleanup(self) -> None:
        """Remove the session directory and every snapshot left in it."""
        if self.session_dir.exists():
            shutil.rmtree(self.session_dir)

    def _ensure_ignored(self) -> None:
        # keep snapshots out of "git add ." when they live inside the workspace
        marker = self.backup_root / ".gitignore"
        if not marker.exists():
            marker.write_text("*\n", encoding="utf-8")

    def _prune(self, directory: Path) -> None:
        # drop directories emptied by restore/discard, up to the session dir
        current = directory
        while current != self.session_dir.parent and current.is_dir():
            try:
                current.rmdir()
            except OSError:
                break
            if current == self.session_dir:
                break
            current = current.parent


def _unique(target: Path, suffix: str = "") -> Path:
    candidate = target.with_name(target.name + suffix)
    counter = 1
    while candidate.exists():
        candidate = target.with_name(f"{target.name}.{counter}{suffix}")
        counter += 1
    return candidate


__all__ = [
    "ABSENT_SUFFIX",
    "BackupError",
    "ChangeTracker",
    "RollbackError",
    "RollbackReport",
]

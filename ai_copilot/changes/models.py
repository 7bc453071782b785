"""Records of file mutations and their backups."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional

ChangeStatus = Literal["modified", "added", "deleted"]


@dataclass
class Change:
    """One proposed or applied mutation of ``file_path``.

    ``backup_path`` stays ``None`` until a snapshot exists; nothing may write
    to the file before that.
    """

    file_path: str
    description: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
    backup_path: Optional[Path] = None
    status: ChangeStatus = "modified"

    @property
    def backed_up(self) -> bool:
        return self.backup_path is not None


__all__ = ["Change", "ChangeStatus"]

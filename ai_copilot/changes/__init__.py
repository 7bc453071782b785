"""Change tracking and rollback."""
from .models import Change, ChangeStatus
from .tracker import ABSENT_SUFFIX, BackupError, ChangeTracker, RollbackError, RollbackReport

__all__ = [
    "ABSENT_SUFFIX",
    "BackupError",
    "Change",
    "ChangeStatus",
    "ChangeTracker",
    "RollbackError",
    "RollbackReport",
]

"""Agent session state and decisions."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from ai_copilot.changes.models import Change

TaskStatus = Literal["in_progress", "completed", "failed", "rejected"]


class DecisionPhase(str, Enum):
    ANALYSIS = "analysis"
    CONTEXT = "context"
    MODIFICATION = "modification"
    VERIFICATION = "verification"

    @classmethod
    def parse(cls, value: str) -> Optional["DecisionPhase"]:
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# Phases always run in this order and never go back.
PHASE_ORDER: tuple[DecisionPhase, ...] = (
    DecisionPhase.ANALYSIS,
    DecisionPhase.CONTEXT,
    DecisionPhase.MODIFICATION,
    DecisionPhase.VERIFICATION,
)


@dataclass
class Decision:
    """Structured reading of the model's analysis response."""

    phase: DecisionPhase = DecisionPhase.ANALYSIS
    action: str = ""
    reasoning: str = ""
    context: List[str] = field(default_factory=list)
    tools: List[str] = field(default_factory=list)
    changes: List[Change] = field(default_factory=list)

    def remaining_phases(self) -> List[DecisionPhase]:
        return list(PHASE_ORDER[PHASE_ORDER.index(self.phase) :])


@dataclass
class TaskState:
    description: str
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    status: TaskStatus = "in_progress"
    changes: List[Change] = field(default_factory=list)

    def finish(self, status: TaskStatus, when: Optional[datetime] = None) -> None:
        self.status = status
        self.end_time = when or datetime.now()

    @property
    def duration(self) -> float:
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()


@dataclass
class AgentState:
    """Goal-directed session state; lives for one agent run."""

    goal: str
    current_task: Optional[TaskState] = None
    completed_tasks: List[TaskState] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.now)
    last_activity: datetime = field(default_factory=datetime.now)

    def touch(self) -> None:
        self.last_activity = datetime.now()

    def begin_task(self, description: str, changes: Optional[List[Change]] = None) -> TaskState:
        """Replace the current task, moving the previous one into ``completed_tasks``."""
        previous = self.current_task
        if previous is not None:
            if previous.end_time is None:
                previous.finish("completed" if previous.status == "in_progress" else previous.status)
            self.completed_tasks.append(previous)
        self.current_task = TaskState(description=description, changes=list(changes or []))
        self.touch()
        return self.current_task


ConfirmationStatus = Literal["pending", "accepted", "rejected"]


@dataclass
class ChangeConfirmation:
    status: ConfirmationStatus
    changes: List[Change] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)
    comment: str = ""


__all__ = [
    "AgentState",
    "ChangeConfirmation",
    "ConfirmationStatus",
    "Decision",
    "DecisionPhase",
    "PHASE_ORDER",
    "TaskState",
    "TaskStatus",
]

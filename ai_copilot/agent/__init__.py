"""Decision engine, session actor and agent loop."""
from .decision import DecisionValidationError, parse_decision, validate_decision
from .engine import DecisionEngine
from .loop import AgentLoop
from .models import PHASE_ORDER, AgentState, Decision, DecisionPhase, TaskState
from .session import CopilotSession, SessionBusyError
from .stream import ResultStream, StreamEvent

__all__ = [
    "AgentLoop",
    "AgentState",
    "CopilotSession",
    "Decision",
    "DecisionEngine",
    "DecisionPhase",
    "DecisionValidationError",
    "PHASE_ORDER",
    "ResultStream",
    "SessionBusyError",
    "StreamEvent",
    "TaskState",
    "parse_decision",
    "validate_decision",
]

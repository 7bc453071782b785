"""Tolerant parser for the line-oriented decision format.

The model is asked to answer with ``Key: value`` lines::

    Phase: modification
    Action: fix bug
    Reasoning: because
    Context: a.go, b.go
    Tools: grep_search
    Changes: a.go|add guard
      b.go|update caller

Unknown keys and malformed lines are ignored. A decision without an action
or a reasoning is rejected by ``validate_decision``.
"""
from __future__ import annotations

import re
from typing import List, Optional

from ai_copilot.changes.models import Change

from .models import Decision, DecisionPhase

KEYS = ("phase", "action", "reasoning", "context", "tools", "changes")
EMPTY_VALUES = {"", "n/a", "na", "none", "-"}

_KEY_LINE = re.compile(r"^[\s>#*\-•]*\**\s*(?P<key>[A-Za-z][A-Za-z ]*?)\s*\**\s*:\s*(?P<value>.*)$")
_CHANGE_LINE = re.compile(r"^[\s*\-•]*(?:\d+[.)]\s+)?(?P<path>[^|]+?)\s*\|\s*(?P<description>.*\S)\s*$")


class DecisionValidationError(ValueError):
    """Raised when a decision lacks a required field."""


def _clean(value: str) -> str:
    return value.strip().strip("*").strip()


def _is_empty(value: str) -> bool:
    return value.strip().lower() in EMPTY_VALUES


def split_list(value: str) -> List[str]:
    """Split a comma-separated value, dropping blanks, ``N/A`` and repeats."""
    items: List[str] = []
    for raw in value.split(","):
        item = raw.strip().strip("`'\"[]").strip()
        if _is_empty(item) or item in items:
            continue
        items.append(item)
    return items


def parse_change_line(line: str) -> Optional[Change]:
    match = _CHANGE_LINE.match(line)
    if not match:
        return None
    path = match.group("path").strip().strip("`")
    if _is_empty(path):
        return None
    return Change(file_path=path, description=match.group("description").strip())


def parse_decision(text: str) -> Decision:
    """Parse ``text`` without validating required fields."""
    decision = Decision()
    in_changes = False
    for raw_line in text.splitlines():
        if not raw_line.strip():
            continue
        match = _KEY_LINE.match(raw_line)
        key = match.group("key").strip().lower() if match else None
        if match and key in KEYS:
            value = _clean(match.group("value"))
            in_changes = key == "changes"
            _apply(decision, key, value)
            continue
        if match:
            # unknown key ends a Changes block
            in_changes = False
            continue
        if in_changes:
            change = parse_change_line(raw_line)
            if change is not None:
                decision.changes.append(change)
    return decision


def _apply(decision: Decision, key: str, value: str) -> None:
    if key == "phase":
        words = value.strip("[]").split()
        phase = DecisionPhase.parse(words[0]) if words else None
        if phase is not None:
            decision.phase = phase
    elif key in ("action", "reasoning"):
        if not _is_empty(value):
            setattr(decision, key, value)
    elif key == "context":
        decision.context = split_list(value)
    elif key == "tools":
        decision.tools = split_list(value)
    elif key == "changes" and not _is_empty(value):
        change = parse_change_line(value)
        if change is not None:
            decision.changes.append(change)


def validate_decision(decision: Decision) -> Decision:
    missing = [name for name in ("action", "reasoning") if not getattr(decision, name).strip()]
    if missing:
        raise DecisionValidationError(f"Decision is missing required field(s): {', '.join(missing)}")
    return decision


def parse_and_validate(text: str) -> Decision:
    return validate_decision(parse_decision(text))


__all__ = [
    "DecisionValidationError",
    "parse_and_validate",
    "parse_change_line",
    "parse_decision",
    "split_list",
    "validate_decision",
]

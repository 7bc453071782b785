"""Tool contract shared by every built-in tool."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping


class ToolExecutionError(RuntimeError):
    """Raised by a tool when its operation cannot be completed."""


class Tool(ABC):
    """A named, side-effecting operation the model can request."""

    name: str = ""
    description: str = ""
    schema: Dict[str, Any] = {"type": "object"}

    @abstractmethod
    def execute(self, args: Mapping[str, Any]) -> str:
        """Run the tool and return text for the conversation."""

    def describe(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description}


def operation_schema(operations: list[str], **properties: Dict[str, Any]) -> Dict[str, Any]:
    """Build the common ``{"operation": ..., ...}`` argument schema."""
    return {
        "type": "object",
        "properties": {"operation": {"type": "string", "enum": operations}, **properties},
        "required": ["operation"],
    }


__all__ = ["Tool", "ToolExecutionError", "operation_schema"]

"""Tools the model can invoke through embedded JSON calls."""
from __future__ import annotations

from .base import Tool, ToolExecutionError
from .defaults import build_default_registry
from .registry import ERROR_PREFIX, Segment, ToolCall, ToolCallInterceptor, ToolRegistry

__all__ = [
    "ERROR_PREFIX",
    "Segment",
    "Tool",
    "ToolCall",
    "ToolCallInterceptor",
    "ToolExecutionError",
    "ToolRegistry",
    "build_default_registry",
]

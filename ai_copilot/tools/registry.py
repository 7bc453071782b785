"""Tool registry and embedded tool-call parsing."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from jsonschema import Draft7Validator

from ai_copilot.utils.logger import get_logger

from .base import Tool, ToolExecutionError

LOGGER = get_logger(__name__)

ERROR_PREFIX = "Error executing tool: "


@dataclass
class ToolCall:
    """A tool invocation found in model output, bound to a registered tool."""

    tool: Tool
    args: Dict[str, Any]
    span: Tuple[int, int] = (0, 0)
    validator: Draft7Validator | None = None
    failed: bool = field(default=False, init=False)

    @property
    def name(self) -> str:
        return self.tool.name

    def execute(self) -> str:
        """Run the tool; failures come back as text and set ``failed``."""
        if self.validator is not None:
            errors = sorted(self.validator.iter_errors(self.args), key=lambda exc: list(exc.path))
            if errors:
                return self._failure(f"invalid arguments for {self.name}: {errors[0].message}")
        try:
            return self.tool.execute(self.args)
        except (ToolExecutionError, OSError, ValueError) as exc:
            return self._failure(str(exc))

    def _failure(self, message: str) -> str:
        self.failed = True
        LOGGER.warning("Tool %s failed: %s", self.name, message)
        return f"{ERROR_PREFIX}{message}"


class ToolRegistry:
    """Registry that maps tool names to tools and validates their arguments."""

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}
        self._validators: Dict[str, Draft7Validator] = {}

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            LOGGER.debug("Overwriting existing tool registration for %s", tool.name)
        Draft7Validator.check_schema(tool.schema)
        self._tools[tool.name] = tool
        self._validators[tool.name] = Draft7Validator(tool.schema)

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def available(self) -> Iterable[str]:
        return sorted(self._tools.keys())

    def descriptions(self) -> List[Dict[str, str]]:
        return [self._tools[name].describe() for name in self.available()]

    def bind(self, name: str, args: Dict[str, Any], span: Tuple[int, int] = (0, 0)) -> Optional[ToolCall]:
        tool = self.get(name)
        if tool is None:
            return None
        return ToolCall(tool=tool, args=args, span=span, validator=self._validators[name])

    def parse_tool_call(self, text: str) -> Optional[ToolCall]:
        """Return the first registered ``{"tool": ..., "args": {...}}`` object in ``text``."""
        for start, end in iter_json_objects(text):
            call = self.call_from_json(text[start:end], (start, end))
            if call is not None:
                return call
        return None

    def call_from_json(self, candidate: str, span: Tuple[int, int]) -> Optional[ToolCall]:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict) or not isinstance(data.get("tool"), str):
            return None
        args = data.get("args", {})
        if not isinstance(args, dict):
            return None
        return self.bind(data["tool"], args, span)


# JSON scanning ----------------------------------------------------------


def find_object_end(text: str, start: int) -> Optional[int]:
    """Return the index just past the ``}`` closing the ``{`` at ``start``.

    ``None`` means the object is not closed yet.
    """
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
    return None


def iter_json_objects(text: str) -> Iterator[Tuple[int, int]]:
    """Yield spans of balanced ``{...}`` regions, outermost first, left to right."""
    position = text.find("{")
    while position != -1:
        end = find_object_end(text, position)
        if end is None:
            # an unclosed brace may still contain a closed object later on
            position = text.find("{", position + 1)
            continue
        yield position, end
        position = text.find("{", position + 1)


# Streaming interception -------------------------------------------------


@dataclass
class Segment:
    """Output piece produced by ``ToolCallInterceptor``: display text or a tool call."""

    text: str = ""
    call: Optional[ToolCall] = None


class ToolCallInterceptor:
    """Separate embedded tool calls from display text across streamed fragments.

    Text after an unclosed ``{`` is held back until the object closes (or the
    stream ends), so a tool call split over several fragments is still found
    and never shown as text.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry
        self._buffer = ""

    def feed(self, fragment: str) -> List[Segment]:
        self._buffer += fragment
        segments: List[Segment] = []
        while self._buffer:
            start = self._buffer.find("{")
            if start == -1:
                segments.append(Segment(text=self._buffer))
                self._buffer = ""
                break
            if start > 0:
                segments.append(Segment(text=self._buffer[:start]))
                self._buffer = self._buffer[start:]
            end = find_object_end(self._buffer, 0)
            if end is None:
                break
            candidate = self._buffer[:end]
            self._buffer = self._buffer[end:]
            call = self._registry.call_from_json(candidate, (0, end))
            if call is not None:
                segments.append(Segment(call=call))
            else:
                segments.append(Segment(text=candidate))
        return _merge_text(segments)

    def flush(self) -> List[Segment]:
        """Release anything still held back at end of stream."""
        remaining, self._buffer = self._buffer, ""
        if not remaining:
            return []
        call = self._registry.parse_tool_call(remaining)
        if call is None:
            return [Segment(text=remaining)]
        start, end = call.span
        segments = [Segment(text=remaining[:start]), Segment(call=call), Segment(text=remaining[end:])]
        return _merge_text(segments)


def _merge_text(segments: List[Segment]) -> List[Segment]:
    merged: List[Segment] = []
    for segment in segments:
        if segment.call is None and not segment.text:
            continue
        if merged and segment.call is None and merged[-1].call is None:
            merged[-1] = Segment(text=merged[-1].text + segment.text)
        else:
            merged.append(segment)
    return merged


__all__ = [
    "ERROR_PREFIX",
    "Segment",
    "ToolCall",
    "ToolCallInterceptor",
    "ToolRegistry",
    "find_object_end",
    "iter_json_objects",
]

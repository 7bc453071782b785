"""Canonical tool names."""

FILESYSTEM = "filesystem"
GIT = "git"
GREP_SEARCH = "grep_search"
RUN_TERMINAL = "run_terminal"
LINTER = "linter"
LANGUAGE_DETECTOR = "language_detector"

ALL_TOOLS = (
    FILESYSTEM,
    GIT,
    GREP_SEARCH,
    RUN_TERMINAL,
    LINTER,
    LANGUAGE_DETECTOR,
)

__all__ = [
    "FILESYSTEM",
    "GIT",
    "GREP_SEARCH",
    "RUN_TERMINAL",
    "LINTER",
    "LANGUAGE_DETECTOR",
    "ALL_TOOLS",
]

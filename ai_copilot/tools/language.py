"""Detect which programming languages a workspace contains."""
from __future__ import annotations

from collections import Counter
from typing import Any, List, Mapping, Tuple

from ai_copilot.workspace import Workspace

from . import names
from .base import Tool

LANGUAGES = {
    ".go": "Go",
    ".py": "Python",
    ".js": "JavaScript",
    ".ts": "TypeScript",
    ".jsx": "React",
    ".tsx": "React TypeScript",
    ".vue": "Vue",
    ".java": "Java",
    ".cpp": "C++",
    ".c": "C",
    ".h": "C/C++ Header",
    ".rb": "Ruby",
    ".php": "PHP",
    ".rs": "Rust",
    ".swift": "Swift",
    ".kt": "Kotlin",
    ".scala": "Scala",
    ".cs": "C#",
    ".r": "R",
    ".dart": "Dart",
    ".lua": "Lua",
    ".pl": "Perl",
    ".sh": "Shell",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".json": "JSON",
    ".xml": "XML",
    ".html": "HTML",
    ".css": "CSS",
    ".scss": "SCSS",
    ".md": "Markdown",
    ".toml": "TOML",
    ".sql": "SQL",
}


def detect_languages(workspace: Workspace) -> List[Tuple[str, int, float]]:
    """Return ``(language, files, percentage)`` sorted by file count."""
    counts: Counter[str] = Counter()
    for path in workspace.iter_files():
        language = LANGUAGES.get(path.suffix.lower())
        if language:
            counts[language] += 1
    total = sum(counts.values())
    return [(language, count, count * 100.0 / total) for language, count in counts.most_common()]


class LanguageDetectorTool(Tool):
    name = names.LANGUAGE_DETECTOR
    description = "Detect programming languages in the workspace. Args: {}"
    schema = {"type": "object"}

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    def execute(self, args: Mapping[str, Any]) -> str:
        languages = detect_languages(self.workspace)
        if not languages:
            return "No source files detected in workspace"
        lines = ["Detected Languages:"]
        lines.extend(f"- {name}: {count} files ({share:.1f}%)" for name, count, share in languages)
        return "\n".join(lines)


__all__ = ["LanguageDetectorTool", "detect_languages", "LANGUAGES"]

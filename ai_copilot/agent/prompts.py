"""Prompt templates sent to the model."""
from __future__ import annotations

from textwrap import dedent
from typing import Dict, Iterable

CONTINUATION_PROMPT = "Continue working on the goal. What's your next step?"

TOOL_CALL_HINT = (
    'To run a tool, reply with a JSON object on its own: {"tool": "<name>", "args": {...}}'
)


def format_tools(descriptions: Iterable[Dict[str, str]]) -> str:
    return "\n".join(f"- {item['name']}: {item['description']}" for item in descriptions)


def system_prompt(tools: str, workspace_root: str) -> str:
    return dedent(
        """\
        You are a powerful AI coding assistant. You will process requests in distinct phases:

        1. Analysis Phase: understand the request, decide which tools and context are needed.
        2. Context Gathering Phase: collect relevant code context and dependencies.
        3. Modification Phase: propose specific code changes and implement them with tools.
        4. Verification Phase: verify the changes and present them for confirmation.

        For each action, explain your reasoning.
        {hint}

        Available tools:
        {tools}

        Current workspace: {root}
        """
    ).format(hint=TOOL_CALL_HINT, tools=tools, root=workspace_root)


def agent_system_prompt(goal: str, tools: str, workspace_root: str) -> str:
    return dedent(
        """\
        You are a powerful AI coding assistant working on the following goal:

        {goal}

        Follow these steps for each task:

        1. ANALYZE: analyze the current state and explain your thinking
        2. PLAN: describe the changes you plan to make
        3. IMPLEMENT: make the necessary code changes
        4. VERIFY: explain how the changes achieve the goal

        When writing code, include the imports it needs and keep it runnable.
        Start each response with "Task: <brief task description>".
        {hint}

        Available tools:
        {tools}

        Current workspace: {root}
        """
    ).format(goal=goal, hint=TOOL_CALL_HINT, tools=tools, root=workspace_root)


def analysis_prompt(request: str) -> str:
    return dedent(
        """\
        You are analyzing a user request to determine the next action.

        Request: {request}

        You MUST respond in the following format EXACTLY, including all fields:

        Phase: [analysis/context/modification/verification]
        Action: [specific action to take]
        Reasoning: [why this approach]
        Context: [comma-separated list of files/directories needed]
        Tools: [comma-separated list of search patterns]
        Changes: [one change per line in the format: filepath|description]

        Always provide ALL fields, even if some are empty (use N/A).
        """
    ).format(request=request)


def modification_prompt(path: str, content: str, description: str) -> str:
    return dedent(
        """\
        Given the current content of {path} and the proposed change, generate the complete modified content.

        Current content:
        {content}

        Proposed change:
        {description}

        Reply with the complete file content only, without explanations.
        """
    ).format(path=path, content=content or "(new file)", description=description)


def phase_continuation_prompt(phase: str, action: str) -> str:
    return f"Continue with {phase} phase. Current state: {action}"


def fix_prompt(path: str, content: str, issues: str) -> str:
    return dedent(
        """\
        Analyze the following code and its issues, then provide a fixed version.

        File: {path}

        Current code:
        {content}

        Issues found:
        {issues}

        Reply with the complete fixed file content only.
        """
    ).format(path=path, content=content, issues=issues)


__all__ = [
    "CONTINUATION_PROMPT",
    "agent_system_prompt",
    "analysis_prompt",
    "fix_prompt",
    "format_tools",
    "modification_prompt",
    "phase_continuation_prompt",
    "system_prompt",
]

"""Goal-directed agent loop with operator confirmation."""
from __future__ import annotations

import re
from typing import Callable, Optional

from ai_copilot import git_tools
from ai_copilot.changes.tracker import RollbackError
from ai_copilot.utils.logger import get_logger

from .models import AgentState
from .prompts import CONTINUATION_PROMPT
from .session import CopilotSession
from .stream import ResultStream

LOGGER = get_logger(__name__)

_TASK_LINE = re.compile(r"^\s*\**Task\**\s*:\s*(?P<description>.+?)\s*$", re.MULTILINE)

MENU = """
What would you like to do?
  [a]ccept     - Accept and commit the current changes
  [r]eject     - Reject and rollback the current changes
  [A]ll        - Reject all changes and exit
  [d]iff       - Show detailed changes
  [s]ummary    - Show task summary
  [p]rogress   - Show overall progress
  [q]uit       - Exit agent mode
"""


def extract_task_description(text: str) -> Optional[str]:
    match = _TASK_LINE.search(text)
    return match.group("description") if match else None


class AgentLoop:
    """Drive one goal: prompt, show the diff, apply the operator's command, repeat.

    ``read_command`` returns one line of operator input; ``echo`` prints text.
    """

    def __init__(
        self,
        session: CopilotSession,
        *,
        read_command: Callable[[str], str],
        echo: Callable[[str], None],
        max_iterations: Optional[int] = None,
    ) -> None:
        self.session = session
        self.read_command = read_command
        self.echo = echo
        self.max_iterations = max_iterations or session.settings.max_iterations

    def run(self, goal: str) -> AgentState:
        state = self.session.start_agent(goal)
        self.echo(f"\nStarting AI Agent mode with goal: {goal}\n")
        for iteration in range(1, self.max_iterations + 1):
            text = self.drain(self.session.process_prompt(CONTINUATION_PROMPT))
            description = extract_task_description(text) or self._fallback_description(iteration)
            self.session.begin_task(description)
            self._show_diff(only_if_changed=True)
            if not self._handle_commands(description):
                break
        else:
            self.echo(f"\nStopped after {self.max_iterations} iterations.\n")
        return state

    def drain(self, stream: ResultStream) -> str:
        """Echo every event and return the text that was streamed."""
        collected = []
        try:
            for event in stream:
                if event.kind == "error":
                    self.echo(f"\nError: {event.text}\n")
                elif event.kind == "cancelled":
                    self.echo("\n[cancelled]\n")
                else:
                    self.echo(event.text)
                    if event.kind == "text":
                        collected.append(event.text)
        except KeyboardInterrupt:
            stream.cancel()
            return self.drain(stream)
        return "".join(collected)

    def _fallback_description(self, iteration: int) -> str:
        decision = self.session.engine.last_decision
        if decision is not None and decision.action:
            return decision.action
        return f"Iteration {iteration}"

    def _show_diff(self, *, only_if_changed: bool = False) -> None:
        try:
            diff = self.session.diff()
        except git_tools.GitIntegrationError as exc:
            self.echo(f"\nError getting changes: {exc}\n")
            return
        if only_if_changed and diff == "No changes detected":
            return
        self.echo(f"\n{diff}")

    def _handle_commands(self, description: str) -> bool:
        """Read commands until one ends the iteration; False stops the loop."""
        while True:
            self.echo(MENU)
            raw = self.read_command("Enter your choice: ").strip()
            command = raw if raw == "A" else raw.lower()
            if command in ("a", "accept"):
                self._accept(description)
                return True
            if command in ("r", "reject"):
                self._reject("Changes reset successfully.")
                return True
            if command in ("A", "all"):
                self._reject("All changes reset successfully.")
                return False
            if command in ("d", "diff"):
                self.echo("\nDetailed changes:")
                self._show_diff()
                continue
            if command in ("s", "summary"):
                self.echo("\n" + self.session.summary() + "\n")
                continue
            if command in ("p", "progress"):
                self.echo("\n" + self.session.progress() + "\n")
                continue
            if command in ("q", "quit"):
                return False
            self.echo("Invalid input. Please try again.\n")

    def _accept(self, description: str) -> None:
        try:
            self.session.accept(message=f"Auto commit: {description}")
        except git_tools.GitIntegrationError as exc:
            self.echo(f"Failed to commit changes: {exc}\n")
            return
        self.echo("Changes committed successfully.\n")

    def _reject(self, success: str) -> None:
        try:
            self.session.reject()
        except RollbackError as exc:
            self.echo(f"Rollback finished with errors:\n{exc}\n")
            return
        except git_tools.GitIntegrationError as exc:
            self.echo(f"Failed to reset changes: {exc}\n")
            return
        self.echo(success + "\n")


__all__ = ["AgentLoop", "MENU", "extract_task_description"]

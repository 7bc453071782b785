"""Copilot session: owns conversation, agent state, tools and change tracking."""
from __future__ import annotations

from datetime import datetime
from threading import Lock, RLock
from typing import List, Optional
from uuid import uuid4

from ai_copilot import git_tools
from ai_copilot.changes.models import Change
from ai_copilot.changes.tracker import ChangeTracker, RollbackError, RollbackReport
from ai_copilot.providers.llm import ProviderAdapter, create_adapter
from ai_copilot.session.chat import ChatClient
from ai_copilot.tools import names
from ai_copilot.tools.defaults import build_default_registry
from ai_copilot.tools.language import detect_languages
from ai_copilot.tools.registry import ToolRegistry
from ai_copilot.utils.config import Settings
from ai_copilot.utils.logger import get_logger, set_correlation_id
from ai_copilot.workspace import Workspace

from . import prompts
from .autofix import AutoFixer, is_autofix_request
from .context import CODEBASE_QUESTION, ContextRequest, resolve_context
from .engine import DecisionEngine
from .models import AgentState, ChangeConfirmation, TaskState
from .stream import ResultStream

LOGGER = get_logger(__name__)

ACCEPT_ANSWERS = {"yes", "y"}
REJECT_ANSWERS = {"no", "n"}


class SessionBusyError(RuntimeError):
    """Raised when a prompt is issued while another one is still running."""


class CopilotSession:
    """Single owner of one session's mutable state.

    Every mutation happens under ``self._lock``; the prompt worker holds it
    for the whole prompt, so prompts on one session run one at a time.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        adapter: Optional[ProviderAdapter] = None,
        registry: Optional[ToolRegistry] = None,
    ) -> None:
        self._lock = RLock()
        self._start_lock = Lock()
        self.settings = settings
        self.chat = ChatClient(settings, adapter or create_adapter(timeout=settings.request_timeout))
        self.agent: Optional[AgentState] = None
        self._pending: List[Change] = []
        self._baseline: List[Change] = []
        self._active: Optional[ResultStream] = None
        self._custom_registry = registry
        self._bind_workspace(Workspace(settings.workspace_root))

    def _bind_workspace(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.tracker = ChangeTracker(workspace, self.settings.backup_root())
        self.registry = self._custom_registry or build_default_registry(
            workspace,
            before_write=self._snapshot_before_write,
            command_timeout=self.settings.command_timeout,
        )
        self.engine = DecisionEngine(self.chat, self.registry, self.tracker, workspace)
        self.autofixer = AutoFixer(self.chat, self.registry, self.tracker, workspace)

    def set_project_path(self, path) -> List[tuple[str, int, float]]:
        """Point the session at another workspace; returns its detected languages."""
        with self._lock:
            if self._pending:
                raise SessionBusyError("Accept or reject pending changes before switching projects")
            workspace = Workspace(path)
            if not workspace.root.is_dir():
                raise ValueError(f"Not a directory: {path}")
            self.settings.workspace_root = workspace.root
            self._bind_workspace(workspace)
            return detect_languages(workspace)

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def process_prompt(self, prompt: str) -> ResultStream:
        """Start a worker for ``prompt`` and return the stream it publishes into."""
        # The worker holds self._lock for the whole prompt, so the busy check
        # uses its own lock.
        with self._start_lock:
            active = self._active
            if active is not None and not active.done:
                raise SessionBusyError("A prompt is already in flight for this session")
            set_correlation_id(uuid4().hex[:12])
            stream = ResultStream()
            self._active = stream
            return stream.start(lambda publish_to: self._run_prompt(prompt, publish_to))

    def _run_prompt(self, prompt: str, stream: ResultStream) -> None:
        with self._lock:
            if self.agent is not None:
                self.agent.touch()
            self._take_baseline()
            try:
                if is_autofix_request(prompt):
                    self.autofixer.run(stream.publish, self._pending)
                    return
                if self.agent is None:
                    self.chat.add_system_message(
                        prompts.system_prompt(self._tool_text(), str(self.workspace.root))
                    )
                decision = self.engine.decide(prompt)
                self.engine.run(decision, stream.publish, self._pending)
            finally:
                if not self._pending:
                    self._drop_baseline()

    def _tool_text(self) -> str:
        return prompts.format_tools(self.registry.descriptions())

    def _take_baseline(self) -> None:
        # Uncommitted edits that predate the task survive a reject. The snapshot
        # is retaken for every task that starts with nothing pending.
        if self._pending:
            return
        self._drop_baseline()
        if not git_tools.is_git_repo(self.workspace.root):
            return
        self._baseline = self.tracker.backup_changed_files()
        if self._baseline:
            LOGGER.info("Snapshotted %d dirty file(s) before the task", len(self._baseline))

    def _drop_baseline(self) -> None:
        self.tracker.discard_all(self._baseline)
        self._baseline = []

    def _snapshot_before_write(self, relative: str) -> None:
        with self._lock:
            if any(change.file_path == relative and change.backed_up for change in self._pending):
                return
            self._pending.append(self.tracker.track(relative, "written by tool call"))

    # ------------------------------------------------------------------
    # Code-mode shortcuts
    # ------------------------------------------------------------------

    def add_context(self, request: ContextRequest) -> str:
        """Resolve an ``@`` shortcut and add its result to the conversation.

        Context goes in as a user-role entry because the store keeps a single
        system message and every prompt replaces it.
        """
        with self._lock:
            message = f"Context ({request.type}): {resolve_context(request, self.registry)}"
            if request.type == "codebase":
                message = f"{message}\n\n{CODEBASE_QUESTION}"
            self.chat.conversation.append("user", message)
            LOGGER.info("Added %s context: %s", request.type, request.describe())
            return message

    def run_shell(self, command: str) -> str:
        """Run ``command`` through the run_terminal tool; failures come back as text."""
        with self._lock:
            call = self.registry.bind(names.RUN_TERMINAL, {"command": command})
            if call is None:
                return f"Tool {names.RUN_TERMINAL} is not available"
            return call.execute()

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def pending_changes(self) -> List[Change]:
        with self._lock:
            return list(self._pending)

    def handle_confirmation(self, answer: str, changes: Optional[List[Change]] = None) -> ChangeConfirmation:
        normalized = answer.strip().lower()
        if normalized in ACCEPT_ANSWERS:
            return self.accept(changes=changes)
        if normalized in REJECT_ANSWERS:
            return self.reject(changes=changes)
        raise ValueError(f"Invalid confirmation response: {answer}")

    def accept(self, message: Optional[str] = None, changes: Optional[List[Change]] = None) -> ChangeConfirmation:
        """Stage and commit everything, then drop the task's backups."""
        with self._lock:
            selected = list(self._pending if changes is None else changes)
            root = self.workspace.root
            if git_tools.is_git_repo(root) and git_tools.status_entries(root):
                git_tools.commit_all(root, message or "Apply accepted changes")
            self.tracker.discard_all(selected)
            self._drop_baseline()
            self._clear(selected)
            confirmation = ChangeConfirmation(status="accepted", changes=selected)
            self._update_task(confirmation)
            return confirmation

    def reject(self, changes: Optional[List[Change]] = None) -> ChangeConfirmation:
        """Restore every backed-up change, hard-reset, then restore pre-task edits.

        Raises ``RollbackError`` with the aggregated report if any restore failed.
        """
        with self._lock:
            selected = list(self._pending if changes is None else changes)
            report = self.tracker.rollback(selected)
            root = self.workspace.root
            if git_tools.is_git_repo(root):
                git_tools.reset_hard(root)
                baseline_report = self.tracker.rollback(self._baseline)
                _merge_reports(report, baseline_report)
                self._baseline = []
            self._clear(selected)
            confirmation = ChangeConfirmation(status="rejected", changes=selected, comment=report.summary())
            self._update_task(confirmation)
            if not report.ok:
                raise RollbackError(report)
            return confirmation

    def _clear(self, selected: List[Change]) -> None:
        self._pending = [change for change in self._pending if change not in selected]
        if not self._pending:
            self._drop_baseline()

    def _update_task(self, confirmation: ChangeConfirmation) -> None:
        if self.agent is None or self.agent.current_task is None:
            return
        task = self.agent.current_task
        task.finish("completed" if confirmation.status == "accepted" else "rejected", confirmation.timestamp)
        if confirmation.status == "accepted":
            task.changes = list(confirmation.changes)
        self.agent.touch()

    # ------------------------------------------------------------------
    # Agent mode
    # ------------------------------------------------------------------

    def start_agent(self, goal: str) -> AgentState:
        with self._lock:
            self.agent = AgentState(goal=goal)
            self.chat.add_system_message(
                prompts.agent_system_prompt(goal, self._tool_text(), str(self.workspace.root))
            )
            return self.agent

    def begin_task(self, description: str) -> TaskState:
        with self._lock:
            if self.agent is None:
                raise RuntimeError("Agent mode has not been started")
            return self.agent.begin_task(description, self._pending)

    def summary(self) -> str:
        with self._lock:
            if self.agent is None:
                return "Agent mode is not active"
            lines = ["Task Summary:", f"Goal: {self.agent.goal}"]
            task = self.agent.current_task
            if task is not None:
                lines.append(f"Current Task: {task.description}")
                lines.append(f"Start Time: {task.start_time.isoformat(timespec='seconds')}")
                lines.append(f"Duration: {task.duration:.0f}s")
                lines.append(f"Changes: {len(task.changes)}")
            lines.extend(_completed_lines(self.agent.completed_tasks))
            return "\n".join(lines)

    def progress(self) -> str:
        with self._lock:
            if self.agent is None:
                return "Agent mode is not active"
            now = datetime.now()
            lines = [
                "Overall Progress:",
                f"Goal: {self.agent.goal}",
                f"Started: {self.agent.start_time.isoformat(timespec='seconds')}",
                f"Duration: {(now - self.agent.start_time).total_seconds():.0f}s",
                f"Last Activity: {(now - self.agent.last_activity).total_seconds():.0f}s ago",
            ]
            lines.extend(_completed_lines(self.agent.completed_tasks))
            task = self.agent.current_task
            if task is not None:
                lines.extend(["", f"Current Task: {task.description}", f"Status: {task.status}"])
            return "\n".join(lines)

    def diff(self) -> str:
        return git_tools.describe_changes(self.workspace.root)

    def close(self) -> None:
        """Cancel any running prompt and remove the session's backups.

        Backups of undecided changes stay on disk so they can still be restored.
        """
        active = self._active
        if active is not None:
            active.cancel()
            active.wait()
        with self._lock:
            self.agent = None
            if not self._pending:
                self._drop_baseline()
                self.tracker.cleanup()


def _completed_lines(tasks: List[TaskState]) -> List[str]:
    if not tasks:
        return []
    lines = ["", "Completed Tasks:"]
    for index, task in enumerate(tasks, start=1):
        lines.append(f"{index}. {task.description} ({task.status}) - {task.duration:.0f}s")
    return lines


def _merge_reports(target: RollbackReport, other: RollbackReport) -> None:
    target.restored.extend(other.restored)
    target.skipped.extend(other.skipped)
    target.errors.extend(other.errors)


__all__ = ["CopilotSession", "SessionBusyError", "ACCEPT_ANSWERS", "REJECT_ANSWERS"]

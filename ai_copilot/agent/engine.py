"""Four-phase decision execution."""
from __future__ import annotations

from typing import Callable, Dict, List, Optional

from ai_copilot import git_tools
from ai_copilot.changes.models import Change
from ai_copilot.changes.tracker import ChangeTracker
from ai_copilot.session.chat import ChatClient
from ai_copilot.tools import names
from ai_copilot.tools.base import ToolExecutionError
from ai_copilot.tools.linter import NO_ISSUES
from ai_copilot.tools.registry import Segment, ToolCallInterceptor, ToolRegistry
from ai_copilot.utils.logger import get_logger
from ai_copilot.workspace import Workspace

from . import prompts
from .decision import parse_and_validate
from .models import Decision, DecisionPhase
from .stream import StreamCancelled

LOGGER = get_logger(__name__)

Publish = Callable[..., None]
PhaseHandler = Callable[[Decision, Publish, List[Change]], None]

PHASE_BANNERS = {
    DecisionPhase.ANALYSIS: "Starting analysis phase...",
    DecisionPhase.CONTEXT: "Gathering context...",
    DecisionPhase.MODIFICATION: "Making modifications...",
    DecisionPhase.VERIFICATION: "Verifying changes...",
}


class DecisionEngine:
    """Obtain a decision from the model and run its remaining phases in order.

    Every phase handler runs exactly once, followed by a streamed follow-up
    from the model whose embedded tool calls are executed as they arrive.
    """

    def __init__(
        self,
        chat: ChatClient,
        registry: ToolRegistry,
        tracker: ChangeTracker,
        workspace: Workspace,
    ) -> None:
        self.chat = chat
        self.registry = registry
        self.tracker = tracker
        self.workspace = workspace
        self.last_decision: Optional[Decision] = None
        self._handlers: Dict[DecisionPhase, PhaseHandler] = {
            DecisionPhase.ANALYSIS: self.handle_analysis,
            DecisionPhase.CONTEXT: self.handle_context,
            DecisionPhase.MODIFICATION: self.handle_modification,
            DecisionPhase.VERIFICATION: self.handle_verification,
        }

    def decide(self, prompt: str) -> Decision:
        """Ask the model for a decision; raises ``DecisionValidationError`` when incomplete."""
        response = self.chat.send(prompts.analysis_prompt(prompt))
        decision = parse_and_validate(response)
        LOGGER.info("Decision: phase=%s action=%s", decision.phase.value, decision.action)
        self.last_decision = decision
        return decision

    def run(self, decision: Decision, publish: Publish, changes: List[Change]) -> None:
        """Execute the phases from ``decision.phase`` onward.

        Applied changes are appended to ``changes``.
        """
        for phase in decision.remaining_phases():
            publish(f"\n=== {PHASE_BANNERS[phase]} ===\n")
            self._handlers[phase](decision, publish, changes)
            self.continue_phase(phase, decision, publish)

    def continue_phase(self, phase: DecisionPhase, decision: Decision, publish: Publish) -> str:
        message = prompts.phase_continuation_prompt(phase.value, decision.action)
        interceptor = ToolCallInterceptor(self.registry)

        def on_chunk(fragment: str) -> None:
            self._emit(interceptor.feed(fragment), publish)

        response = self.chat.send(message, on_chunk)
        self._emit(interceptor.flush(), publish)
        self.chat.record_exchange(message, response)
        return response

    def _emit(self, segments: List[Segment], publish: Publish) -> None:
        for segment in segments:
            if segment.call is None:
                publish(segment.text)
                continue
            LOGGER.info("Model requested tool %s", segment.call.name)
            result = segment.call.execute()
            publish(f"\nTool result: {result}\n", kind="tool_result")

    # ------------------------------------------------------------------
    # Phase handlers
    # ------------------------------------------------------------------

    def handle_analysis(self, decision: Decision, publish: Publish, changes: List[Change]) -> None:
        publish(f"Analysis:\n{decision.reasoning}\n\nProposed action:\n{decision.action}\n")
        for path in decision.context:
            content = self._run_tool(names.FILESYSTEM, {"operation": "read", "path": path})
            if content is None:
                publish(f"\nCould not read context from {path}\n", kind="tool_result")
                continue
            publish(f"\nRelevant context from {path}:\n{content}\n")

    def handle_context(self, decision: Decision, publish: Publish, changes: List[Change]) -> None:
        known = set(self.registry.available())
        # Tools entries that are not tool names are used as search patterns.
        for pattern in decision.tools:
            if pattern in known:
                continue
            call = self.registry.bind(names.GREP_SEARCH, {"pattern": pattern})
            if call is None:
                break
            result = call.execute()
            if call.failed:
                publish(f"\nError searching for pattern {pattern}: {result}\n", kind="tool_result")
            else:
                publish(f"\nFound matches for pattern {pattern}:\n{result}\n")

    def handle_modification(self, decision: Decision, publish: Publish, changes: List[Change]) -> None:
        publish("Implementing changes...\n")
        applied: List[Change] = []
        try:
            for change in decision.changes:
                publish(f"\nProcessing change for {change.file_path}:\n{change.description}\n")
                self._apply_change(change, publish, changes, applied)
        except Exception:
            self._rollback(applied, publish, changes)
            raise

    def handle_verification(self, decision: Decision, publish: Publish, changes: List[Change]) -> None:
        diff = self._run_tool(names.GIT, {"operation": "diff"})
        if diff is None:
            publish("\nCould not collect changes from git\n", kind="tool_result")
        else:
            publish(f"\nProposed changes:\n{diff}\n")
        publish("\nPlease review the changes and confirm (yes/no)\n")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_change(
        self,
        change: Change,
        publish: Publish,
        changes: List[Change],
        applied: List[Change],
    ) -> None:
        relative = self.workspace.relative(change.file_path)
        change.file_path = relative
        change.status = "modified" if self.workspace.exists(relative) else "added"
        change.backup_path = self.tracker.backup(relative)
        changes.append(change)
        applied.append(change)

        current = ""
        if change.status == "modified":
            current = self._require_tool(names.FILESYSTEM, {"operation": "read", "path": relative})

        generated = self.chat.send(prompts.modification_prompt(relative, current, change.description))
        content = git_tools.strip_code_fences(generated)
        self._require_tool(names.FILESYSTEM, {"operation": "write", "path": relative, "content": content})
        publish("Successfully wrote changes to file\n")

        lint = self.registry.bind(names.LINTER, {"operation": "check", "path": relative})
        if lint is not None:
            result = lint.execute()
            if lint.failed:
                publish(f"Warning: Linter check failed: {result}\n", kind="tool_result")
            elif result != NO_ISSUES:
                publish(f"Linter found issues:\n{result}\n", kind="tool_result")
            else:
                publish("Code passed linter checks\n")

        staged = self.registry.bind(names.GIT, {"operation": "add", "paths": [relative]})
        if staged is not None:
            result = staged.execute()
            if staged.failed:
                publish(f"Warning: Failed to stage changes: {result}\n", kind="tool_result")
            else:
                publish("Added changes to git staging area\n")

    def _rollback(self, applied: List[Change], publish: Publish, changes: List[Change]) -> None:
        if not applied:
            return
        report = self.tracker.rollback(applied)
        for change in applied:
            if change in changes:
                changes.remove(change)
        if git_tools.is_git_repo(self.workspace.root):
            try:
                git_tools.unstage(self.workspace.root, [change.file_path for change in applied])
            except git_tools.GitIntegrationError as exc:
                LOGGER.warning("Could not unstage rolled back files: %s", exc)
        if not report.ok:
            LOGGER.error("Partial rollback of modification phase: %s", report.summary())
        try:
            publish(f"\nRolled back changes from this phase. {report.summary()}\n")
        except StreamCancelled:
            LOGGER.info("Rolled back modification phase after cancellation")

    def _run_tool(self, name: str, args: Dict[str, object]) -> Optional[str]:
        call = self.registry.bind(name, dict(args))
        if call is None:
            return None
        result = call.execute()
        return None if call.failed else result

    def _require_tool(self, name: str, args: Dict[str, object]) -> str:
        call = self.registry.bind(name, dict(args))
        if call is None:
            raise ToolExecutionError(f"{name} tool not available")
        result = call.execute()
        if call.failed:
            raise ToolExecutionError(result)
        return result


__all__ = ["DecisionEngine", "PHASE_BANNERS", "Publish"]

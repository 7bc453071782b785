from __future__ import annotations

from pathlib import Path

import pytest

from ai_copilot.agent.context import (
    CODEBASE_QUESTION,
    ContextRequest,
    ContextRequestError,
    parse_context_request,
    resolve_context,
    shell_command,
)
from ai_copilot.tools import build_default_registry
from ai_copilot.workspace import Workspace

from test_session import ScriptedAdapter, _session


@pytest.fixture()
def workspace(tmp_path: Path) -> Workspace:
    (tmp_path / "pkg" / "inner").mkdir(parents=True)
    (tmp_path / "pkg" / "api.py").write_text("def handler():\n    pass\n", encoding="utf-8")
    (tmp_path / "pkg" / "inner" / "deep.py").write_text("X = 1\n", encoding="utf-8")
    (tmp_path / "README.md").write_text("hello\n", encoding="utf-8")
    return Workspace(tmp_path)


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("@file README.md", ContextRequest(type="file", target="README.md")),
        (
            "@file README.md what is this",
            ContextRequest(type="file", target="README.md", question="what is this"),
        ),
        ("@folder depth=2 pkg list it", ContextRequest(type="folder", target="pkg", question="list it", depth=2)),
        ("@codebase", ContextRequest(type="codebase")),
        ("@codebase depth=3 where is X set", ContextRequest(type="codebase", question="where is X set", depth=3)),
        ("@git diff is this safe", ContextRequest(type="git", target="diff", question="is this safe")),
        ("@pkg", ContextRequest(type="folder", target="pkg")),
        ("@docs/ summarise", ContextRequest(type="folder", target="docs/", question="summarise")),
        ("@README.md depth=4 why", ContextRequest(type="file", target="README.md", question="why", depth=4)),
    ],
)
def test_parse_context_request(workspace, line, expected):
    assert parse_context_request(line, workspace) == expected


@pytest.mark.parametrize(
    ("line", "message"),
    [
        ("@", "Empty context request"),
        ("@web https://example.com", "not supported"),
        ("@git", "Usage: @git"),
        ("@git reset", "Unsupported git context command: reset"),
        ("@file", "Usage: @file"),
        ("@../outside.txt", "outside the workspace"),
        ("plain prompt", "start with @"),
    ],
)
def test_parse_context_request_rejects_bad_input(workspace, line, message):
    with pytest.raises(ContextRequestError, match=message):
        parse_context_request(line, workspace)


def test_shell_command_extracts_passthrough():
    assert shell_command("/!ls -la") == "ls -la"
    assert shell_command("  /!  git status ") == "git status"
    assert shell_command("/!") == ""
    assert shell_command("/help") is None
    assert shell_command("run ls") is None


def test_resolve_file_folder_and_codebase(workspace):
    registry = build_default_registry(workspace)

    file_text = resolve_context(ContextRequest(type="file", target="README.md"), registry)
    assert file_text == "File: README.md\n\nhello\n"

    folder_text = resolve_context(ContextRequest(type="folder", target="pkg", depth=0), registry)
    assert folder_text.splitlines()[2:] == ["pkg/api.py", "pkg/inner/deep.py"]

    codebase_text = resolve_context(ContextRequest(type="codebase", depth=1), registry)
    assert "README.md" in codebase_text
    assert "pkg/api.py" in codebase_text
    assert "pkg/inner/deep.py" not in codebase_text


def test_resolve_reports_tool_failures(workspace):
    registry = build_default_registry(workspace)

    with pytest.raises(ContextRequestError, match="missing.txt"):
        resolve_context(ContextRequest(type="file", target="missing.txt"), registry)


def test_resolve_git_status(git_repo):
    registry = build_default_registry(Workspace(git_repo))
    (git_repo / "README.md").write_text("changed\n", encoding="utf-8")

    text = resolve_context(ContextRequest(type="git", target="status"), registry)

    assert text.startswith("git status:")
    assert "README.md" in text


def test_session_adds_context_as_conversation_entry(git_repo):
    session = _session(git_repo, ScriptedAdapter([]))

    message = session.add_context(parse_context_request("@codebase", session.workspace))

    entries = session.chat.conversation.snapshot()
    assert entries[-1].role == "user"
    assert entries[-1].content == message
    assert message.startswith("Context (codebase): ")
    assert "main.go" in message
    assert message.endswith(CODEBASE_QUESTION)


def test_session_context_survives_the_next_prompt(git_repo):
    decision = "Phase: context\nAction: explain\nReasoning: r\n"
    adapter = ScriptedAdapter([decision])
    session = _session(git_repo, adapter)
    session.add_context(parse_context_request("@file main.go", session.workspace))

    session.process_prompt("what does main do").collect()

    contents = [message.content for message in adapter.requests[0].messages]
    assert any(content.startswith("Context (file): File: main.go") for content in contents)


def test_session_run_shell_goes_through_terminal_tool(git_repo):
    session = _session(git_repo, ScriptedAdapter([]))

    assert session.run_shell("git status --porcelain") == ""
    assert session.run_shell("git no-such-command").startswith("Error executing tool: command failed")

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import List

import pytest

from ai_copilot.tools import ERROR_PREFIX, ToolCallInterceptor, build_default_registry
from ai_copilot.tools.grep import NO_MATCHES
from ai_copilot.tools.names import ALL_TOOLS, FILESYSTEM, GREP_SEARCH, LANGUAGE_DETECTOR, RUN_TERMINAL
from ai_copilot.workspace import Workspace, WorkspaceError


@pytest.fixture()
def workspace(tmp_path: Path) -> Workspace:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("def greet():\n    return 'Hello'\n", encoding="utf-8")
    (tmp_path / "src" / "util.py").write_text("VALUE = 1\n", encoding="utf-8")
    (tmp_path / "main.go").write_text("package main\n\nfunc main() {}\n", encoding="utf-8")
    (tmp_path / ".hidden").mkdir()
    (tmp_path / ".hidden" / "secret.py").write_text("greet\n", encoding="utf-8")
    return Workspace(tmp_path)


@pytest.fixture()
def registry(workspace: Workspace):
    return build_default_registry(workspace)


def _call(tool: str, **args) -> str:
    return json.dumps({"tool": tool, "args": args})


def test_default_registry_exposes_every_builtin(registry):
    assert sorted(registry.available()) == sorted(ALL_TOOLS)
    assert all(entry["description"] for entry in registry.descriptions())


def test_parse_tool_call_finds_embedded_object(registry):
    text = f'Let me look first. {_call(FILESYSTEM, operation="read", path="src/app.py")} then continue'

    call = registry.parse_tool_call(text)

    assert call is not None
    assert call.name == FILESYSTEM
    assert text[call.span[0] : call.span[1]].startswith('{"tool"')
    assert "return 'Hello'" in call.execute()
    assert call.failed is False


def test_parse_tool_call_handles_braces_inside_strings(registry, workspace):
    content = "func main() { fmt.Println(\"}\") }\n"
    text = "noise {not json} " + _call(FILESYSTEM, operation="write", path="out.go", content=content)

    call = registry.parse_tool_call(text)

    assert call is not None
    call.execute()
    assert workspace.read_text("out.go") == content


def test_unknown_tool_or_plain_json_is_not_a_call(registry):
    assert registry.parse_tool_call(_call("deploy", target="prod")) is None
    assert registry.parse_tool_call('{"answer": 42}') is None
    assert registry.parse_tool_call("no braces at all") is None


def test_invalid_arguments_return_error_text(registry):
    call = registry.parse_tool_call(_call(FILESYSTEM, operation="explode", path="x"))

    result = call.execute()

    assert result.startswith(ERROR_PREFIX)
    assert call.failed is True


def test_tool_failure_is_reported_not_raised(registry):
    missing = registry.parse_tool_call(_call(FILESYSTEM, operation="read", path="nope.txt"))
    escape = registry.parse_tool_call(_call(FILESYSTEM, operation="read", path="../outside.txt"))

    assert missing.execute() == f"{ERROR_PREFIX}File not found: nope.txt"
    assert escape.execute().startswith(ERROR_PREFIX)
    assert missing.failed and escape.failed


def test_before_write_hook_runs_before_the_write(workspace):
    seen: List[tuple[str, bool]] = []
    registry = build_default_registry(
        workspace,
        before_write=lambda path: seen.append((path, workspace.exists(path))),
    )

    registry.parse_tool_call(_call(FILESYSTEM, operation="write", path="new/file.txt", content="x")).execute()

    assert seen == [("new/file.txt", False)]


def test_interceptor_reassembles_call_split_across_fragments(registry):
    interceptor = ToolCallInterceptor(registry)
    payload = _call(GREP_SEARCH, pattern="greet")
    fragments = ["Searching now ", payload[:9], payload[9:30], payload[30:] + " done", "!"]

    segments = []
    for fragment in fragments:
        segments.extend(interceptor.feed(fragment))
    segments.extend(interceptor.flush())

    text = "".join(segment.text for segment in segments if segment.call is None)
    calls = [segment.call for segment in segments if segment.call is not None]
    assert text == "Searching now  done!"
    assert len(calls) == 1
    assert calls[0].name == GREP_SEARCH


def test_interceptor_releases_unclosed_brace_at_end(registry):
    interceptor = ToolCallInterceptor(registry)

    assert [segment.text for segment in interceptor.feed("map = {")] == ["map = "]
    assert [segment.text for segment in interceptor.flush()] == ["{"]


def test_interceptor_passes_non_tool_json_through(registry):
    interceptor = ToolCallInterceptor(registry)
    segments = interceptor.feed('config {"debug": true} end')
    assert [segment.text for segment in segments] == ['config {"debug": true} end']


def test_grep_search_skips_hidden_dirs_and_reports_lines(registry):
    call = registry.bind(GREP_SEARCH, {"pattern": "GREET"})
    assert call.execute() == "src/app.py:1:def greet():"

    none = registry.bind(GREP_SEARCH, {"pattern": "absent-token"})
    assert none.execute() == NO_MATCHES

    listing = registry.bind(GREP_SEARCH, {"pattern": ".", "include": "*.py"})
    assert listing.execute().splitlines() == ["src/app.py", "src/util.py"]


def test_grep_search_can_be_scoped_to_a_directory(registry):
    scoped = registry.bind(GREP_SEARCH, {"pattern": ".", "path": "src"})
    assert scoped.execute().splitlines() == ["src/app.py", "src/util.py"]

    missing = registry.bind(GREP_SEARCH, {"pattern": ".", "path": "main.go"})
    assert missing.execute() == f"{ERROR_PREFIX}Not a directory: main.go"
    assert missing.failed

    outside = registry.bind(GREP_SEARCH, {"pattern": ".", "path": "../elsewhere"})
    outside.execute()
    assert outside.failed


def test_language_detector_counts_files(registry):
    output = registry.bind(LANGUAGE_DETECTOR, {}).execute()

    assert output.splitlines()[0] == "Detected Languages:"
    assert "- Python: 2 files (66.7%)" in output
    assert "- Go: 1 files (33.3%)" in output


def test_terminal_tool_reports_failures(registry):
    ok = registry.bind(RUN_TERMINAL, {"command": f'"{sys.executable}" -c "print(42)"'})
    assert ok.execute().strip() == "42"

    bad = registry.bind(RUN_TERMINAL, {"command": f'"{sys.executable}" -c "import sys; sys.exit(3)"'})
    assert "exit code 3" in bad.execute()
    assert bad.failed


def test_workspace_refuses_escaping_paths(workspace):
    with pytest.raises(WorkspaceError):
        workspace.resolve("../etc/passwd")


def test_git_diff_call_inside_a_chunk_is_not_display_text(registry):
    interceptor = ToolCallInterceptor(registry)

    segments = interceptor.feed('Checking {"tool":"git","args":{"operation":"diff"}} now')

    calls = [segment.call for segment in segments if segment.call is not None]
    assert [call.name for call in calls] == ["git"]
    assert calls[0].args == {"operation": "diff"}
    assert "".join(segment.text for segment in segments) == "Checking  now"

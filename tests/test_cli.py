from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from ai_copilot.cli import cli

from test_session import MODIFIED_MAIN, MODIFY_DECISION, ScriptedAdapter


@pytest.fixture()
def runner(monkeypatch, tmp_path) -> CliRunner:
    for key in ("AICOPILOT_API_KEY", "AICOPILOT_PROVIDER", "AICOPILOT_MODEL", "AICOPILOT_WORKSPACE_ROOT"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("ai_copilot.utils.config.DEFAULT_CONFIG_PATHS", ())
    return CliRunner()


@pytest.fixture()
def adapter(monkeypatch):
    def install(fake: ScriptedAdapter) -> ScriptedAdapter:
        monkeypatch.setattr("ai_copilot.cli.create_adapter", lambda timeout=120.0: fake)
        return fake

    return install


class ModelsAdapter(ScriptedAdapter):
    def list_models(self, provider):
        return ["llama3.2:latest", "qwen2.5-coder"]


def test_config_masks_api_key(runner, monkeypatch):
    monkeypatch.setenv("AICOPILOT_API_KEY", "sk-very-secret")

    result = runner.invoke(cli, ["config"])

    assert result.exit_code == 0, result.output
    assert "ollama (ollama)" in result.output
    assert "api_key:       set" in result.output
    assert "sk-very-secret" not in result.output


def test_missing_config_file_is_reported(runner, tmp_path):
    result = runner.invoke(cli, ["--config", str(tmp_path / "absent.toml"), "config"])

    assert result.exit_code != 0
    assert "Configuration file not found" in result.output


def test_malformed_env_value_is_reported(runner, monkeypatch):
    monkeypatch.setenv("AICOPILOT_MAX_TOKENS", "lots")

    result = runner.invoke(cli, ["config"])

    assert result.exit_code != 0
    assert "Invalid value for AICOPILOT_MAX_TOKENS: 'lots'" in result.output
    assert "Traceback" not in result.output


def test_single_shot_chat_streams_reply(runner, adapter):
    fake = adapter(ScriptedAdapter([], streams=[["Hello", ", ", "world"]]))

    result = runner.invoke(cli, ["chat", "say", "hello"])

    assert result.exit_code == 0, result.output
    assert "Hello, world" in result.output
    assert fake.requests[0].messages[-1].content == "say hello"


def test_interactive_chat_commands(runner, adapter):
    fake = adapter(ModelsAdapter([], streams=[["pong"]]))

    result = runner.invoke(cli, ["chat"], input="/help\n/models\n/model qwen2.5-coder\n/bogus\nping\nexit\n")

    assert result.exit_code == 0, result.output
    assert "/reset" in result.output
    assert "qwen2.5-coder" in result.output
    assert "Using model qwen2.5-coder" in result.output
    assert "Unknown command" in result.output
    assert "pong" in result.output
    assert fake.requests[0].model == "qwen2.5-coder"


def test_models_marks_active_model(runner, adapter):
    adapter(ModelsAdapter([]))

    result = runner.invoke(cli, ["models"])

    assert result.exit_code == 0, result.output
    assert "* llama3.2:latest" in result.output
    assert "  qwen2.5-coder" in result.output


def test_code_prompt_accept_commits(runner, adapter, git_repo, git):
    adapter(ScriptedAdapter([MODIFY_DECISION, MODIFIED_MAIN]))

    result = runner.invoke(cli, ["--workspace", str(git_repo), "code", "print", "hi"], input="yes\n")

    assert result.exit_code == 0, result.output
    assert "Pending changes:" in result.output
    assert "Changes committed." in result.output
    assert git(git_repo, "status", "--porcelain") == ""
    assert (git_repo / "main.go").read_text(encoding="utf-8") == MODIFIED_MAIN


def test_code_prompt_reject_rolls_back(runner, adapter, git_repo):
    adapter(ScriptedAdapter([MODIFY_DECISION, MODIFIED_MAIN]))
    original = (git_repo / "main.go").read_bytes()

    result = runner.invoke(cli, ["--workspace", str(git_repo), "code", "print", "hi"], input="n\n")

    assert result.exit_code == 0, result.output
    assert "Changes rolled back." in result.output
    assert (git_repo / "main.go").read_bytes() == original


def test_agent_quits_on_request(runner, adapter, git_repo: Path):
    adapter(ScriptedAdapter(["Phase: verification\nAction: inspect\nReasoning: r\n"], streams=[["Task: inspect repo\n"]]))

    result = runner.invoke(cli, ["--workspace", str(git_repo), "agent", "tidy", "up"], input="q\n")

    assert result.exit_code == 0, result.output
    assert "Starting AI Agent mode with goal: tidy up" in result.output
    assert "Agent finished: 0 task(s) completed." in result.output


def test_code_context_shortcuts_and_shell_passthrough(runner, adapter, git_repo):
    fake = adapter(ScriptedAdapter(["Phase: context\nAction: describe\nReasoning: r\n"], streams=[["A Go program"]]))

    result = runner.invoke(
        cli,
        ["--workspace", str(git_repo), "code"],
        input="@file main.go\n@codebase\n/!git status --porcelain\n/!\n@git reset\nexit\n",
    )

    assert result.exit_code == 0, result.output
    assert "Added file context to the conversation: main.go" in result.output
    assert "Added codebase context to the conversation: codebase (depth 1)" in result.output
    assert "A Go program" in result.output
    assert "Running command: git status --porcelain" in result.output
    assert "No command specified after /!" in result.output
    assert "Error: Unsupported git context command: reset" in result.output
    contents = [message.content for message in fake.requests[0].messages]
    assert any(content.startswith("Context (file): File: main.go") for content in contents)
    assert any(content.startswith("Context (codebase): ") for content in contents)


def test_code_help_lists_shortcuts(runner, adapter, git_repo):
    adapter(ScriptedAdapter([]))

    result = runner.invoke(cli, ["--workspace", str(git_repo), "code"], input="/help\nexit\n")

    assert result.exit_code == 0, result.output
    assert "@codebase [depth=N] [question]" in result.output
    assert "/!COMMAND" in result.output

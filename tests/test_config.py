from __future__ import annotations

import os

import pytest

from ai_copilot.utils.config import ConfigError, Settings, find_config_in_parents, load_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("AICOPILOT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("ai_copilot.utils.config.DEFAULT_CONFIG_PATHS", ())


def test_defaults_point_at_local_ollama(tmp_path):
    settings = load_settings()

    provider = settings.active_provider()
    assert provider.type == "ollama"
    assert provider.base_url == "http://localhost:11434"
    assert settings.workspace_root == tmp_path.resolve()
    assert settings.backup_root() == tmp_path.resolve() / ".aicopilot" / "backups"


def test_project_file_and_env_are_merged(tmp_path, monkeypatch):
    (tmp_path / ".aicopilot.toml").write_text(
        'provider = "lab"\nmodel = "qwen2.5-coder"\nmax-tokens = 512\n'
        '[providers.lab]\ntype = "openai"\nbase_url = "http://gpu-box:8000"\n',
        encoding="utf-8",
    )
    nested = tmp_path / "pkg" / "sub"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)
    monkeypatch.setenv("AICOPILOT_TEMPERATURE", "0.1")
    monkeypatch.setenv("AICOPILOT_API_KEY", "secret")

    settings = load_settings()

    assert settings.model == "qwen2.5-coder"
    assert settings.max_tokens == 512
    assert settings.temperature == pytest.approx(0.1)
    provider = settings.active_provider()
    assert (provider.name, provider.type, provider.base_url) == ("lab", "openai", "http://gpu-box:8000")
    assert provider.api_key == "secret"
    assert set(settings.providers) >= {"ollama", "openai", "lab"}


def test_explicit_missing_file_is_an_error(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_settings(tmp_path / "missing.toml")


def test_invalid_toml_is_an_error(tmp_path):
    path = tmp_path / "broken.toml"
    path.write_text("provider = \n", encoding="utf-8")
    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_settings(path)


def test_unknown_provider_is_an_error():
    with pytest.raises(ConfigError, match="not configured"):
        Settings(provider="nowhere").active_provider()


@pytest.mark.parametrize(
    ("name", "value"),
    [("AICOPILOT_MAX_TOKENS", "lots"), ("AICOPILOT_TEMPERATURE", "warm"), ("AICOPILOT_COMMAND_TIMEOUT", "")],
)
def test_malformed_numeric_env_value_is_a_config_error(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError, match=f"Invalid value for {name}"):
        load_settings()


def test_base_url_override_wins():
    settings = Settings(provider="openai", base_url="http://proxy:9000/v1")
    assert settings.active_provider().base_url == "http://proxy:9000/v1"


def test_find_config_in_parents(tmp_path):
    (tmp_path / "aicopilot.toml").write_text("", encoding="utf-8")
    deep = tmp_path / "a" / "b"
    deep.mkdir(parents=True)
    assert find_config_in_parents(deep, ("aicopilot.toml",)) == (tmp_path / "aicopilot.toml").resolve()
    assert find_config_in_parents(deep, "nothing.toml") is None

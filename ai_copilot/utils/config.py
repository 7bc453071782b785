"""Configuration loading utilities for the copilot."""
from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from ai_copilot.providers.llm.base import ProviderConfig

CONFIG_FILENAMES: tuple[str, ...] = (".aicopilot.toml", "aicopilot.toml")
DEFAULT_CONFIG_PATHS = (
    Path.home() / ".config" / "aicopilot" / "config.toml",
    Path.home() / ".aicopilot.toml",
)
ENV_PREFIX = "AICOPILOT_"

DEFAULT_PROVIDERS: Dict[str, Dict[str, Any]] = {
    "ollama": {"type": "ollama", "base_url": "http://localhost:11434"},
    "openai": {"type": "openai", "base_url": "https://api.openai.com/v1"},
}


class ConfigError(ValueError):
    """Raised when the configuration cannot be used."""


def find_config_in_parents(
    start_path: Path, config_name: str | Sequence[str] = ".aicopilot.toml"
) -> Optional[Path]:
    """Search parent directories starting from ``start_path`` for configuration files."""

    if isinstance(config_name, str):
        candidate_names: tuple[str, ...] = (config_name,)
    else:
        candidate_names = tuple(config_name)

    current = start_path.resolve()
    if current.is_file():
        current = current.parent

    while True:
        for name in candidate_names:
            candidate = current / name
            if candidate.is_file():
                return candidate.resolve()
        if current.parent == current:
            break
        current = current.parent
    return None


def _default_providers() -> Dict[str, Dict[str, Any]]:
    return {name: dict(values) for name, values in DEFAULT_PROVIDERS.items()}


@dataclass
class Settings:
    """Runtime configuration for the copilot."""

    provider: str = "ollama"
    model: str = "llama3.2:latest"
    temperature: float = 0.7
    max_tokens: int = 2048
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    providers: Dict[str, Dict[str, Any]] = field(default_factory=_default_providers)
    workspace_root: Path = Path(".")
    backup_dir: Path = Path(".aicopilot/backups")
    request_timeout: float = 120.0
    command_timeout: Optional[float] = None
    max_iterations: int = 20
    log_level: str = "WARNING"
    structured_logging: bool = False
    log_file: Optional[Path] = None

    def active_provider(self) -> ProviderConfig:
        """Resolve the connection details for the selected provider.

        ``api_key`` and ``base_url`` set at the top level override the
        provider table entry.
        """
        entry = self.providers.get(self.provider)
        if entry is None:
            raise ConfigError(f"Provider '{self.provider}' is not configured")
        provider_type = entry.get("type") or self.provider
        base_url = self.base_url or entry.get("base_url")
        if not base_url:
            raise ConfigError(f"Provider '{self.provider}' has no base_url")
        return ProviderConfig(
            name=self.provider,
            type=str(provider_type),
            base_url=str(base_url),
            api_key=self.api_key or entry.get("api_key") or None,
        )

    def backup_root(self) -> Path:
        if self.backup_dir.is_absolute():
            return self.backup_dir
        return self.workspace_root / self.backup_dir


def _cast_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in {"1", "true", "on", "yes", "y"}
    return bool(value)


def _cast_number(key: str, value: str, kind: type) -> Any:
    try:
        return kind(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from exc


def _load_from_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid configuration file {path}: {exc}") from exc
    return {k.replace("-", "_"): v for k, v in data.items()}


def _load_from_env(prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    env: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        field_name = key[len(prefix) :].lower()
        if field_name == "structured_logging":
            env[field_name] = _cast_bool(value)
        elif field_name in {"max_tokens", "max_iterations"}:
            env[field_name] = _cast_number(key, value, int)
        elif field_name in {"temperature", "request_timeout", "command_timeout"}:
            env[field_name] = _cast_number(key, value, float)
        elif field_name in {"workspace_root", "backup_dir", "log_file"}:
            env[field_name] = Path(value)
        else:
            env[field_name] = value
    return env


def _merge_providers(configured: Any) -> Dict[str, Dict[str, Any]]:
    providers = _default_providers()
    if configured is None:
        return providers
    if not isinstance(configured, dict):
        raise ConfigError("'providers' must be a table of provider settings")
    for name, values in configured.items():
        if not isinstance(values, dict):
            raise ConfigError(f"Provider '{name}' must be a table")
        merged = providers.setdefault(name, {})
        merged.update({k.replace("-", "_"): v for k, v in values.items()})
    return providers


def load_settings(explicit_path: Optional[Path] = None) -> Settings:
    """Load configuration, merging file and environment sources."""

    file_data: Dict[str, Any] = {}
    if explicit_path:
        if not explicit_path.is_file():
            raise ConfigError(f"Configuration file not found: {explicit_path}")
        file_data.update(_load_from_file(explicit_path))
    else:
        search_paths = []
        project_config = find_config_in_parents(Path.cwd(), CONFIG_FILENAMES)
        if project_config:
            search_paths.append(project_config)
        search_paths.extend(DEFAULT_CONFIG_PATHS)
        for candidate in search_paths:
            file_data = _load_from_file(candidate)
            if file_data:
                break

    env_data = _load_from_env()
    merged: Dict[str, Any] = {**file_data, **env_data}
    merged["providers"] = _merge_providers(merged.get("providers"))

    for key in ("workspace_root", "backup_dir", "log_file"):
        if isinstance(merged.get(key), str):
            merged[key] = Path(merged[key])

    known_fields = set(Settings.__dataclass_fields__)
    init_kwargs = {key: value for key, value in merged.items() if key in known_fields}
    settings = Settings(**init_kwargs)
    if not settings.workspace_root.is_absolute():
        settings.workspace_root = (Path.cwd() / settings.workspace_root).resolve()
    return settings


__all__ = ["Settings", "ConfigError", "load_settings", "find_config_in_parents", "ENV_PREFIX"]

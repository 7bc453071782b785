"""Interactive coding copilot backed by OpenAI-compatible or Ollama models."""
from __future__ import annotations

from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("ai-copilot")
except _metadata.PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.1.0"

from .agent import AgentLoop, CopilotSession, DecisionEngine, DecisionValidationError
from .changes import BackupError, ChangeTracker, RollbackError
from .providers.llm import (
    APIError,
    LLMError,
    Message,
    ProtocolError,
    ProviderAdapter,
    TransportError,
    create_adapter,
)
from .session import ChatClient, ConversationStore
from .tools import ToolExecutionError, ToolRegistry, build_default_registry
from .utils.config import Settings, load_settings
from .utils.logger import configure_logging, get_logger

__all__ = [
    "__version__",
    "APIError",
    "AgentLoop",
    "BackupError",
    "ChangeTracker",
    "ChatClient",
    "ConversationStore",
    "CopilotSession",
    "DecisionEngine",
    "DecisionValidationError",
    "LLMError",
    "Message",
    "ProtocolError",
    "ProviderAdapter",
    "RollbackError",
    "Settings",
    "ToolExecutionError",
    "ToolRegistry",
    "TransportError",
    "build_default_registry",
    "configure_logging",
    "create_adapter",
    "get_logger",
    "load_settings",
]

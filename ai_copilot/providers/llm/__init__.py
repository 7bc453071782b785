"""LLM provider adapters."""
from __future__ import annotations

from typing import Dict

from .adapter import ChunkCallback, ProviderAdapter
from .base import (
    APIError,
    CompletionRequest,
    LLMError,
    Message,
    ProtocolError,
    ProviderConfig,
    StreamHooks,
    TransportError,
)
from .ollama import OllamaSurface
from .openai import OpenAISurface
from .surface import ChatSurface, OpenAICompatibleSurface

_SURFACE_MAP: Dict[str, type[ChatSurface]] = {
    "openai": OpenAISurface,
    "ollama": OllamaSurface,
}


def create_adapter(*, timeout: float = 120.0) -> ProviderAdapter:
    """Build an adapter that knows every native surface."""
    surfaces = {name: factory() for name, factory in _SURFACE_MAP.items()}
    return ProviderAdapter(surfaces, timeout=timeout)


__all__ = [
    "APIError",
    "ChatSurface",
    "ChunkCallback",
    "CompletionRequest",
    "LLMError",
    "Message",
    "OllamaSurface",
    "OpenAICompatibleSurface",
    "OpenAISurface",
    "ProtocolError",
    "ProviderAdapter",
    "ProviderConfig",
    "StreamHooks",
    "TransportError",
    "create_adapter",
]

"""Shared types and errors for LLM provider adapters."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence

ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class Message:
    role: str
    content: str

    def to_payload(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ProviderConfig:
    """Connection details for one configured backend."""

    name: str
    type: str
    base_url: str
    api_key: str | None = None

    @property
    def root_url(self) -> str:
        return self.base_url.rstrip("/")


@dataclass
class CompletionRequest:
    """A single chat completion request, independent of the wire surface."""

    model: str
    messages: Sequence[Message] = field(default_factory=list)
    temperature: float = 0.7
    max_tokens: int = 2048
    stream: bool = False

    def payload_messages(self) -> List[Dict[str, Any]]:
        return [message.to_payload() for message in self.messages]


@dataclass
class StreamHooks:
    """Hooks for streaming responses."""
    on_start: Callable[[], None] | None = None
    on_chunk: Callable[[str], None] | None = None
    on_complete: Callable[[str], None] | None = None
    on_error: Callable[[Exception], None] | None = None


class LLMError(RuntimeError):
    """Raised when an LLM provider encounters an error."""


class TransportError(LLMError):
    """Raised when the provider cannot be reached or answers with an HTTP error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(LLMError):
    """Raised when a response or stream payload cannot be decoded.

    ``partial_text`` holds whatever text was accumulated before the failure.
    """

    def __init__(self, message: str, *, partial_text: str = "") -> None:
        super().__init__(message)
        self.partial_text = partial_text


class APIError(ProtocolError):
    """Raised when the backend reports an error inside an otherwise valid response."""


__all__ = [
    "ROLES",
    "Message",
    "ProviderConfig",
    "CompletionRequest",
    "StreamHooks",
    "LLMError",
    "TransportError",
    "ProtocolError",
    "APIError",
]

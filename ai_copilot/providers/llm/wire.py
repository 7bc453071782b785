"""Pydantic models for the JSON bodies exchanged with LLM backends."""
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WireMessage(BaseModel):
    """Chat message as serialized on the wire."""

    model_config = ConfigDict(extra="allow")

    role: str = "assistant"
    content: Optional[str] = None


class ErrorBody(BaseModel):
    """In-band error object reported by the backend."""

    model_config = ConfigDict(extra="allow")

    message: str = "unknown error"


def _coerce_error(value: Any) -> Any:
    # Some backends report the error as a bare string.
    if isinstance(value, str):
        return {"message": value}
    return value


class ChatCompletionRequest(BaseModel):
    """Body of an OpenAI style chat completion request."""

    model: str
    messages: List[WireMessage]
    temperature: float
    max_tokens: int
    stream: bool = False


class Delta(BaseModel):
    model_config = ConfigDict(extra="allow")

    content: Optional[str] = None


class ChunkChoice(BaseModel):
    model_config = ConfigDict(extra="allow")

    delta: Delta = Field(default_factory=Delta)


class ChatCompletionChunk(BaseModel):
    """One decoded SSE payload of a streamed completion."""

    model_config = ConfigDict(extra="allow")

    choices: List[ChunkChoice] = Field(default_factory=list)
    error: Optional[ErrorBody] = None

    @field_validator("error", mode="before")
    @classmethod
    def _normalize_error(cls, value: Any) -> Any:
        return _coerce_error(value)

    def fragment(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].delta.content or ""


class Choice(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: WireMessage = Field(default_factory=WireMessage)


class ChatCompletionResponse(BaseModel):
    """Non-streamed completion body."""

    model_config = ConfigDict(extra="allow")

    choices: List[Choice] = Field(default_factory=list)
    error: Optional[ErrorBody] = None

    @field_validator("error", mode="before")
    @classmethod
    def _normalize_error(cls, value: Any) -> Any:
        return _coerce_error(value)


class OllamaChunk(BaseModel):
    """One NDJSON object produced by ``/api/chat`` or ``/api/generate``."""

    model_config = ConfigDict(extra="allow")

    response: Optional[str] = None
    message: Optional[WireMessage] = None
    done: bool = False
    error: Optional[str] = None

    @field_validator("error", mode="before")
    @classmethod
    def _flatten_error(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return str(value.get("message") or value)
        return value

    def fragment(self) -> str:
        if self.message is not None and self.message.content:
            return self.message.content
        return self.response or ""


class ModelEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.id or self.name or ""


class ModelList(BaseModel):
    """Union of the OpenAI ``data`` list and the Ollama ``models`` list."""

    model_config = ConfigDict(extra="allow")

    data: List[ModelEntry] = Field(default_factory=list)
    models: List[ModelEntry] = Field(default_factory=list)

    def names(self) -> List[str]:
        return [entry.label for entry in [*self.data, *self.models] if entry.label]


__all__ = [
    "WireMessage",
    "ErrorBody",
    "ChatCompletionRequest",
    "ChatCompletionChunk",
    "ChatCompletionResponse",
    "OllamaChunk",
    "ModelList",
]

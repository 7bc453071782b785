"""Wire surfaces: how a request is addressed, encoded and decoded for one API."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List

import requests
from pydantic import ValidationError

from .base import APIError, CompletionRequest, ProtocolError, ProviderConfig
from .streaming import iter_sse_fragments
from .wire import ChatCompletionRequest, ChatCompletionResponse, ModelList, WireMessage


@dataclass(frozen=True)
class PreparedCall:
    """A request bound to a concrete endpoint; chosen once per request."""

    url: str
    headers: Dict[str, str]
    payload: Dict[str, Any]
    mode: str = "chat"


class ChatSurface(ABC):
    """One HTTP API that can serve chat completions."""

    name: str = "surface"

    @abstractmethod
    def prepare(self, provider: ProviderConfig, request: CompletionRequest) -> PreparedCall:
        """Return the endpoint, headers and JSON body for ``request``."""

    @abstractmethod
    def parse_response(self, response: requests.Response, call: PreparedCall) -> str:
        """Extract the full text of a non-streamed response."""

    @abstractmethod
    def iter_fragments(self, lines: Iterable[str], call: PreparedCall) -> Iterator[str]:
        """Yield text fragments from a streamed response body."""

    @abstractmethod
    def models_url(self, provider: ProviderConfig) -> str:
        """Endpoint that lists available models."""

    def headers(self, provider: ProviderConfig) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if provider.api_key:
            headers["Authorization"] = f"Bearer {provider.api_key}"
        return headers

    def parse_models(self, response: requests.Response) -> List[str]:
        try:
            listing = ModelList.model_validate_json(response.text)
        except ValidationError as exc:
            raise ProtocolError(f"Invalid model listing from {self.name}") from exc
        return listing.names()


class OpenAICompatibleSurface(ChatSurface):
    """The ``/v1/chat/completions`` surface most backends expose."""

    name = "openai-compatible"
    completions_path = "/v1/chat/completions"
    models_path = "/v1/models"

    def prepare(self, provider: ProviderConfig, request: CompletionRequest) -> PreparedCall:
        body = ChatCompletionRequest(
            model=request.model,
            messages=[WireMessage(**message) for message in request.payload_messages()],
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            stream=request.stream,
        )
        return PreparedCall(
            url=f"{provider.root_url}{self.completions_path}",
            headers=self.headers(provider),
            payload=body.model_dump(),
        )

    def parse_response(self, response: requests.Response, call: PreparedCall) -> str:
        try:
            data = ChatCompletionResponse.model_validate_json(response.text)
        except ValidationError as exc:
            raise ProtocolError(f"Invalid JSON response from {self.name} API") from exc
        if data.error is not None:
            raise APIError(data.error.message)
        if not data.choices:
            raise ProtocolError(f"Unexpected {self.name} response structure: no choices")
        return data.choices[0].message.content or ""

    def iter_fragments(self, lines: Iterable[str], call: PreparedCall) -> Iterator[str]:
        return iter_sse_fragments(lines)

    def models_url(self, provider: ProviderConfig) -> str:
        return f"{provider.root_url}{self.models_path}"


__all__ = ["PreparedCall", "ChatSurface", "OpenAICompatibleSurface"]

"""Native Ollama surface (``/api/chat`` and ``/api/generate``)."""
from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator

import requests

from .base import CompletionRequest, ProtocolError, ProviderConfig
from .streaming import decode_ndjson_line, iter_ndjson_fragments
from .surface import ChatSurface, PreparedCall

CHAT_PATH = "/api/chat"
GENERATE_PATH = "/api/generate"
TAGS_PATH = "/api/tags"


class OllamaSurface(ChatSurface):
    """Multi-turn requests go to ``/api/chat``, single prompts to ``/api/generate``."""

    name = "ollama"

    def prepare(self, provider: ProviderConfig, request: CompletionRequest) -> PreparedCall:
        options = {"temperature": request.temperature, "num_predict": request.max_tokens}
        payload: Dict[str, Any] = {"model": request.model, "stream": request.stream, "options": options}
        if len(request.messages) > 1:
            payload["messages"] = request.payload_messages()
            return PreparedCall(
                url=f"{provider.root_url}{CHAT_PATH}",
                headers=self.headers(provider),
                payload=payload,
                mode="chat",
            )
        payload["prompt"] = request.messages[-1].content if request.messages else ""
        return PreparedCall(
            url=f"{provider.root_url}{GENERATE_PATH}",
            headers=self.headers(provider),
            payload=payload,
            mode="generate",
        )

    def parse_response(self, response: requests.Response, call: PreparedCall) -> str:
        # A non-streamed body is one object, but some servers still answer NDJSON.
        lines = [line for line in response.text.splitlines() if line.strip()]
        if not lines:
            raise ProtocolError("Empty response from ollama API")
        return "".join(decode_ndjson_line(line).fragment() for line in lines)

    def iter_fragments(self, lines: Iterable[str], call: PreparedCall) -> Iterator[str]:
        return iter_ndjson_fragments(lines)

    def models_url(self, provider: ProviderConfig) -> str:
        return f"{provider.root_url}{TAGS_PATH}"


__all__ = ["OllamaSurface"]

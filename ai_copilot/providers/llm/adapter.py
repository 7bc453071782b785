"""Provider adapter with OpenAI-compatible first attempt and native fallback."""
from __future__ import annotations

import json
from dataclasses import replace
from typing import Callable, Dict, List, Mapping

import requests

from ai_copilot.utils.logger import get_logger

from .base import (
    CompletionRequest,
    LLMError,
    ProtocolError,
    ProviderConfig,
    StreamHooks,
    TransportError,
)
from .surface import ChatSurface, OpenAICompatibleSurface, PreparedCall

LOGGER = get_logger(__name__)

ChunkCallback = Callable[[str], None]


class ProviderAdapter:
    """Send completion requests to a backend, falling back once on failure.

    The OpenAI-compatible surface is always tried first. A transport failure
    or an HTTP status of 400 and above on that attempt triggers exactly one
    call to the native surface registered for the provider type.
    """

    def __init__(
        self,
        native_surfaces: Mapping[str, ChatSurface],
        *,
        timeout: float = 120.0,
        primary: ChatSurface | None = None,
    ) -> None:
        self._native: Dict[str, ChatSurface] = dict(native_surfaces)
        self._primary = primary or OpenAICompatibleSurface()
        self.timeout = timeout

    def native_surface(self, provider: ProviderConfig) -> ChatSurface:
        surface = self._native.get(provider.type)
        if surface is None:
            raise LLMError(f"Unsupported provider type: {provider.type}")
        return surface

    # ------------------------------------------------------------------
    # High level API
    # ------------------------------------------------------------------

    def complete(self, provider: ProviderConfig, request: CompletionRequest) -> str:
        return self._with_fallback(provider, replace(request, stream=False), None)

    def stream_complete(
        self,
        provider: ProviderConfig,
        request: CompletionRequest,
        on_chunk: ChunkCallback | StreamHooks | None = None,
    ) -> str:
        """Stream a completion; every fragment reaches ``on_chunk`` once, in order.

        Returns the concatenation of the delivered fragments.
        """
        hooks = on_chunk if isinstance(on_chunk, StreamHooks) else StreamHooks(on_chunk=on_chunk)
        request = replace(request, stream=True)
        if hooks.on_start:
            hooks.on_start()
        try:
            text = self._with_fallback(provider, request, hooks.on_chunk or (lambda _fragment: None))
        except Exception as exc:
            if hooks.on_error:
                hooks.on_error(exc)
            raise
        if hooks.on_complete:
            hooks.on_complete(text)
        return text

    def list_models(self, provider: ProviderConfig) -> List[str]:
        """Return model identifiers advertised by the backend."""
        native = self.native_surface(provider)
        try:
            return self._get_models(self._primary, provider)
        except TransportError as exc:
            LOGGER.debug("Model listing via %s failed (%s); using %s", self._primary.name, exc, native.name)
            return self._get_models(native, provider)

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _with_fallback(
        self,
        provider: ProviderConfig,
        request: CompletionRequest,
        emit: ChunkCallback | None,
    ) -> str:
        native = self.native_surface(provider)
        try:
            return self._send(self._primary, provider, request, emit)
        except TransportError as exc:
            LOGGER.info(
                "%s surface failed for provider %s (%s); falling back to %s",
                self._primary.name,
                provider.name,
                exc,
                native.name,
            )
            primary_error = exc
        try:
            return self._send(native, provider, request, emit)
        except TransportError as exc:
            raise TransportError(
                f"All surfaces failed for provider {provider.name}: "
                f"{self._primary.name}: {primary_error}; {native.name}: {exc}",
                status_code=exc.status_code,
            ) from exc

    def _send(
        self,
        surface: ChatSurface,
        provider: ProviderConfig,
        request: CompletionRequest,
        emit: ChunkCallback | None,
    ) -> str:
        call = surface.prepare(provider, request)
        LOGGER.debug("POST %s (stream=%s)", call.url, request.stream)
        try:
            response = requests.post(
                call.url,
                headers=call.headers,
                data=json.dumps(call.payload),
                timeout=self.timeout,
                stream=request.stream,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{surface.name} request to {call.url} failed: {exc}") from exc

        with response:
            if response.status_code >= 400:
                raise TransportError(
                    f"{surface.name} API error {response.status_code}: {response.text[:500]}",
                    status_code=response.status_code,
                )
            if emit is None:
                return surface.parse_response(response, call)
            return self._consume_stream(surface, response, call, emit)

    def _consume_stream(
        self,
        surface: ChatSurface,
        response: requests.Response,
        call: PreparedCall,
        emit: ChunkCallback,
    ) -> str:
        parts: List[str] = []
        try:
            for fragment in surface.iter_fragments(response.iter_lines(decode_unicode=True), call):
                parts.append(fragment)
                emit(fragment)
        except ProtocolError as exc:
            exc.partial_text = "".join(parts)
            raise
        except requests.RequestException as exc:
            # Fragments were already delivered, so no fallback from here.
            raise ProtocolError(
                f"{surface.name} stream interrupted: {exc}", partial_text="".join(parts)
            ) from exc
        return "".join(parts)

    def _get_models(self, surface: ChatSurface, provider: ProviderConfig) -> List[str]:
        url = surface.models_url(provider)
        try:
            response = requests.get(url, headers=surface.headers(provider), timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"{surface.name} request to {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise TransportError(
                f"{surface.name} API error {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        return surface.parse_models(response)


__all__ = ["ProviderAdapter", "ChunkCallback"]

"""Line decoders for streamed completions (SSE and NDJSON)."""
from __future__ import annotations

from typing import Iterable, Iterator

from pydantic import ValidationError

from .base import APIError, ProtocolError
from .wire import ChatCompletionChunk, OllamaChunk

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


def iter_sse_payloads(lines: Iterable[str | bytes | None]) -> Iterator[str]:
    """Yield the ``data:`` payloads of an SSE stream until ``[DONE]``."""
    for raw in lines:
        if raw is None:
            continue
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        line = line.rstrip("\r\n")
        if not line.strip():
            continue
        if not line.startswith(SSE_DATA_PREFIX):
            # comments, event names and ids carry no text
            continue
        payload = line[len(SSE_DATA_PREFIX) :]
        if payload.startswith(" "):
            payload = payload[1:]
        if payload.strip() == SSE_DONE:
            return
        yield payload


def decode_sse_chunk(payload: str) -> str:
    """Decode one SSE payload into its text fragment.

    Raises ``APIError`` for an in-band error object and ``ProtocolError`` when
    the payload is not a chunk object.
    """
    try:
        chunk = ChatCompletionChunk.model_validate_json(payload)
    except ValidationError as exc:
        raise ProtocolError(f"Malformed stream payload: {payload[:200]!r}") from exc
    if chunk.error is not None:
        raise APIError(chunk.error.message)
    return chunk.fragment()


def iter_sse_fragments(lines: Iterable[str | bytes | None]) -> Iterator[str]:
    for payload in iter_sse_payloads(lines):
        fragment = decode_sse_chunk(payload)
        if fragment:
            yield fragment


def decode_ndjson_line(line: str) -> OllamaChunk:
    try:
        chunk = OllamaChunk.model_validate_json(line)
    except ValidationError as exc:
        raise ProtocolError(f"Malformed NDJSON object: {line[:200]!r}") from exc
    if chunk.error:
        raise APIError(chunk.error)
    return chunk


def iter_ndjson_fragments(lines: Iterable[str | bytes | None]) -> Iterator[str]:
    """Yield text fragments from an NDJSON stream until ``done`` is set."""
    for raw in lines:
        if raw is None:
            continue
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        if not line.strip():
            continue
        chunk = decode_ndjson_line(line)
        fragment = chunk.fragment()
        if fragment:
            yield fragment
        if chunk.done:
            return


__all__ = [
    "iter_sse_payloads",
    "decode_sse_chunk",
    "iter_sse_fragments",
    "decode_ndjson_line",
    "iter_ndjson_fragments",
]

from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest
import requests

from ai_copilot.providers.llm import (
    APIError,
    CompletionRequest,
    LLMError,
    Message,
    ProtocolError,
    ProviderConfig,
    StreamHooks,
    TransportError,
    create_adapter,
)

OLLAMA = ProviderConfig(name="ollama", type="ollama", base_url="http://localhost:11434")
OPENAI = ProviderConfig(name="openai", type="openai", base_url="https://api.openai.com/v1", api_key="sk-test")


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", lines: List[str] | None = None) -> None:
        self.status_code = status_code
        self.text = text
        self._lines = lines or []

    def iter_lines(self, decode_unicode: bool = False):
        return iter(self._lines)

    def json(self) -> Any:
        return json.loads(self.text)

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        return None


class FakeHTTP:
    """Answers POST/GET calls from a url -> response table and records them."""

    def __init__(self, routes: Dict[str, Any]) -> None:
        self.routes = routes
        self.calls: List[Dict[str, Any]] = []

    def _answer(self, url: str, **kwargs):
        body = kwargs.get("data")
        self.calls.append({"url": url, "payload": json.loads(body) if body else None, **kwargs})
        result = self.routes.get(url, FakeResponse(status_code=404, text="not found"))
        if isinstance(result, Exception):
            raise result
        return result

    def post(self, url, **kwargs):
        return self._answer(url, **kwargs)

    def get(self, url, **kwargs):
        return self._answer(url, **kwargs)


@pytest.fixture()
def http(monkeypatch):
    def install(routes: Dict[str, Any]) -> FakeHTTP:
        fake = FakeHTTP(routes)
        monkeypatch.setattr("ai_copilot.providers.llm.adapter.requests.post", fake.post)
        monkeypatch.setattr("ai_copilot.providers.llm.adapter.requests.get", fake.get)
        return fake

    return install


def _request(*contents: str) -> CompletionRequest:
    messages = [Message(role="user", content=text) for text in contents]
    return CompletionRequest(model="demo", messages=messages, temperature=0.2, max_tokens=64)


def _sse(*fragments: str) -> List[str]:
    lines = []
    for fragment in fragments:
        lines.append("data: " + json.dumps({"choices": [{"delta": {"content": fragment}}]}))
        lines.append("")
    lines.append("data: [DONE]")
    return lines


def test_compatible_surface_is_tried_first(http):
    fake = http(
        {
            "http://localhost:11434/v1/chat/completions": FakeResponse(
                text=json.dumps({"choices": [{"message": {"role": "assistant", "content": "hi"}}]})
            )
        }
    )

    text = create_adapter().complete(OLLAMA, _request("hello"))

    assert text == "hi"
    assert [call["url"] for call in fake.calls] == ["http://localhost:11434/v1/chat/completions"]
    payload = fake.calls[0]["payload"]
    assert payload["model"] == "demo"
    assert payload["stream"] is False
    assert payload["max_tokens"] == 64


def test_http_error_falls_back_to_native_chat_exactly_once(http):
    fake = http(
        {
            "http://localhost:11434/v1/chat/completions": FakeResponse(status_code=404, text="missing"),
            "http://localhost:11434/api/chat": FakeResponse(
                text=json.dumps({"message": {"role": "assistant", "content": "from native"}, "done": True})
            ),
        }
    )

    text = create_adapter().complete(OLLAMA, _request("first", "second"))

    assert text == "from native"
    assert [call["url"] for call in fake.calls] == [
        "http://localhost:11434/v1/chat/completions",
        "http://localhost:11434/api/chat",
    ]
    native = fake.calls[1]["payload"]
    assert [m["content"] for m in native["messages"]] == ["first", "second"]
    assert native["options"] == {"temperature": 0.2, "num_predict": 64}


def test_single_message_uses_generate_endpoint(http):
    fake = http(
        {
            "http://localhost:11434/api/generate": FakeResponse(
                text=json.dumps({"response": "generated", "done": True})
            ),
        }
    )

    text = create_adapter().complete(OLLAMA, _request("only prompt"))

    assert text == "generated"
    payload = fake.calls[-1]["payload"]
    assert fake.calls[-1]["url"] == "http://localhost:11434/api/generate"
    assert payload["prompt"] == "only prompt"
    assert "messages" not in payload


def test_connection_error_triggers_fallback(http):
    fake = http(
        {
            "https://api.openai.com/v1/v1/chat/completions": requests.ConnectionError("refused"),
            "https://api.openai.com/v1/chat/completions": FakeResponse(
                text=json.dumps({"choices": [{"message": {"content": "native openai"}}]})
            ),
        }
    )

    assert create_adapter().complete(OPENAI, _request("a", "b")) == "native openai"
    assert len(fake.calls) == 2
    assert fake.calls[1]["headers"]["Authorization"] == "Bearer sk-test"


def test_both_surfaces_failing_raises_transport_error(http):
    fake = http({})

    with pytest.raises(TransportError) as excinfo:
        create_adapter().complete(OLLAMA, _request("a", "b"))

    assert excinfo.value.status_code == 404
    assert len(fake.calls) == 2


def test_unsupported_provider_type_is_rejected_before_any_request(http):
    fake = http({})
    provider = ProviderConfig(name="odd", type="mystery", base_url="http://example.invalid")

    with pytest.raises(LLMError, match="Unsupported provider type"):
        create_adapter().complete(provider, _request("a"))

    assert fake.calls == []


def test_stream_delivers_fragments_in_order_and_matches_complete(http):
    fragments = [" Hel", "lo ", "\n", "world  "]
    http(
        {
            "http://localhost:11434/v1/chat/completions": FakeResponse(lines=_sse(*fragments)),
        }
    )
    received: List[str] = []

    streamed = create_adapter().stream_complete(OLLAMA, _request("a", "b"), received.append)

    assert received == fragments
    assert streamed == "".join(fragments)

    http(
        {
            "http://localhost:11434/v1/chat/completions": FakeResponse(
                text=json.dumps({"choices": [{"message": {"content": "".join(fragments)}}]})
            )
        }
    )
    assert create_adapter().complete(OLLAMA, _request("a", "b")) == streamed


def test_stream_ignores_comments_and_event_lines(http):
    lines = [": keep-alive", "event: message", *_sse("a", "b")]
    http({"http://localhost:11434/v1/chat/completions": FakeResponse(lines=lines)})

    assert create_adapter().stream_complete(OLLAMA, _request("x", "y")) == "ab"


def test_in_band_stream_error_is_reported_without_fallback(http):
    lines = [*_sse("partial")[:2], 'data: {"error": {"message": "quota exceeded"}}']
    fake = http({"http://localhost:11434/v1/chat/completions": FakeResponse(lines=lines)})

    with pytest.raises(APIError, match="quota exceeded") as excinfo:
        create_adapter().stream_complete(OLLAMA, _request("x", "y"), lambda _f: None)

    assert isinstance(excinfo.value, ProtocolError)
    assert excinfo.value.partial_text == "partial"
    assert len(fake.calls) == 1


def test_malformed_stream_payload_keeps_partial_text(http):
    lines = [*_sse("Hel", "lo")[:4], "data: {not json"]
    http({"http://localhost:11434/v1/chat/completions": FakeResponse(lines=lines)})
    errors: List[Exception] = []

    with pytest.raises(ProtocolError) as excinfo:
        create_adapter().stream_complete(OLLAMA, _request("x", "y"), StreamHooks(on_error=errors.append))

    assert excinfo.value.partial_text == "Hello"
    assert errors == [excinfo.value]


def test_ollama_ndjson_stream_after_fallback(http):
    lines = [
        json.dumps({"message": {"role": "assistant", "content": "one "}, "done": False}),
        json.dumps({"message": {"role": "assistant", "content": "two"}, "done": False}),
        json.dumps({"done": True}),
        json.dumps({"message": {"role": "assistant", "content": "ignored"}}),
    ]
    fake = http(
        {
            "http://localhost:11434/v1/chat/completions": FakeResponse(status_code=500, text="boom"),
            "http://localhost:11434/api/chat": FakeResponse(lines=lines),
        }
    )
    hooks_seen: List[str] = []
    hooks = StreamHooks(
        on_start=lambda: hooks_seen.append("start"),
        on_chunk=hooks_seen.append,
        on_complete=lambda text: hooks_seen.append(f"done:{text}"),
    )

    text = create_adapter().stream_complete(OLLAMA, _request("x", "y"), hooks)

    assert text == "one two"
    assert hooks_seen == ["start", "one ", "two", "done:one two"]
    assert fake.calls[1]["payload"]["stream"] is True


def test_mid_stream_transport_failure_does_not_fall_back(http):
    def broken_lines():
        yield _sse("abc")[0]
        raise requests.ConnectionError("reset by peer")

    response = FakeResponse()
    response.iter_lines = lambda decode_unicode=False: broken_lines()
    fake = http({"http://localhost:11434/v1/chat/completions": response})

    with pytest.raises(ProtocolError) as excinfo:
        create_adapter().stream_complete(OLLAMA, _request("x", "y"), lambda _f: None)

    assert excinfo.value.partial_text == "abc"
    assert len(fake.calls) == 1


def test_list_models_falls_back_to_tags(http):
    http(
        {
            "http://localhost:11434/api/tags": FakeResponse(
                text=json.dumps({"models": [{"name": "llama3.2:latest"}, {"name": "qwen2.5-coder"}]})
            )
        }
    )

    assert create_adapter().list_models(OLLAMA) == ["llama3.2:latest", "qwen2.5-coder"]

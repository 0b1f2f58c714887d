from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from goaltrack.ai import gemini_client
from goaltrack.ai.gemini_client import GeminiClient, GeminiRequestError, GeminiResponseError


def _run(coro):
    return asyncio.run(coro)


def _client(**kwargs):
    return GeminiClient(api_key="test-key", model="gemini-test", **kwargs)


def _payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _install_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(
        gemini_client.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=transport, **kwargs),
    )

    async def _no_sleep(_seconds):
        return None

    monkeypatch.setattr(gemini_client.asyncio, "sleep", _no_sleep)


def test_extract_text_joins_parts() -> None:
    payload = {"candidates": [{"content": {"parts": [{"text": " {\"a\": "}, {"text": "1} "}]}}]}
    assert _client()._extract_text(payload) == "{\"a\":\n1}"


def test_extract_text_without_candidates_raises() -> None:
    with pytest.raises(GeminiResponseError):
        _client()._extract_text({"candidates": []})

    with pytest.raises(GeminiResponseError):
        _client()._extract_text(_payload("   "))


def test_decode_json_text_strips_markdown_fence() -> None:
    text = "```json\n{\"title\": \"Save more\"}\n```"
    assert _client()._decode_json_text(text) == {"title": "Save more"}


def test_decode_json_text_rejects_prose() -> None:
    with pytest.raises(GeminiResponseError):
        _client()._decode_json_text("Here are some tips for you")


def test_generate_json_requests_json_mode(monkeypatch) -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_payload("[{\"title\": \"Tip\"}]"))

    _install_transport(monkeypatch, handler)

    result = _run(_client().generate_json("hello", max_output_tokens=99))

    assert result == [{"title": "Tip"}]
    assert "gemini-test:generateContent" in seen["url"]
    assert "key=test-key" in seen["url"]
    assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"
    assert seen["body"]["generationConfig"]["maxOutputTokens"] == 99


def test_generate_json_retries_transient_status(monkeypatch) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json=_payload("{\"ok\": true}"))

    _install_transport(monkeypatch, handler)

    assert _run(_client(max_retries=2).generate_json("hi")) == {"ok": True}
    assert len(calls) == 2


def test_generate_json_raises_on_client_error(monkeypatch) -> None:
    _install_transport(monkeypatch, lambda request: httpx.Response(400, text="bad key"))

    with pytest.raises(GeminiRequestError) as exc_info:
        _run(_client().generate_json("hi"))

    assert exc_info.value.status_code == 400

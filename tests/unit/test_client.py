import json
import logging
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from langchain_dify._client import ENV_HTTP_DEBUG, DifyHttpClient, HttpConfig
from langchain_dify._errors import DifyAPIError
from langchain_dify._sse import aiter_answers, iter_answers

SSE_BODY = (
    b'data: {"event": "message", "answer": "Hi"}\n\n'
    b'data: {"event": "message", "answer": " there"}\n\n'
    b'data: {"event": "message_end", "conversation_id": "c-1"}\n\n'
)


def test_httpconfig_initialization():
    cfg = HttpConfig(base_url="https://example.com", timeout_s=10.0)

    assert cfg.base_url == "https://example.com"
    assert cfg.timeout_s == 10.0


def test_httpconfig_default_timeout():
    assert HttpConfig(base_url="https://example.com").timeout_s == 120.0


def make_client():
    cfg = HttpConfig(base_url="https://example.com", timeout_s=5.0)
    return DifyHttpClient(config=cfg, api_key="app-secret")


def test_headers_without_accept():
    client = make_client()

    headers = client._headers()

    assert headers["Authorization"] == "Bearer app-secret"
    assert headers["Content-Type"] == "application/json"
    assert "Accept" not in headers


def test_headers_with_accept():
    client = make_client()

    headers = client._headers(accept="text/event-stream")

    assert headers["Accept"] == "text/event-stream"


def test_stream_post_json_returns_stream_context_manager():
    client = make_client()
    mock_client = MagicMock()
    mock_stream = MagicMock()
    mock_client.stream.return_value = mock_stream
    client._client = mock_client

    payload = {"query": "hi"}
    cm = client.stream_post_json("/v1/chat-messages", payload)

    assert cm is mock_stream
    args, kwargs = mock_client.stream.call_args
    assert args == ("POST", "https://example.com/v1/chat-messages")
    headers = kwargs["headers"]
    assert headers["Authorization"] == "Bearer app-secret"
    assert headers["Content-Type"] == "application/json"
    assert headers["Accept"] == "text/event-stream"
    assert kwargs["json"] == payload


def test_astream_post_json_returns_async_stream_context_manager():
    client = make_client()
    mock_ac = AsyncMock()
    mock_stream = MagicMock()
    # httpx.AsyncClient.stream is a plain method returning an async context manager.
    mock_ac.stream = MagicMock(return_value=mock_stream)
    client._aclient = mock_ac

    payload = {"query": "hi"}
    cm = client.astream_post_json("/v1/chat-messages", payload)

    assert cm is mock_stream
    args, kwargs = mock_ac.stream.call_args
    assert args == ("POST", "https://example.com/v1/chat-messages")
    assert kwargs["headers"]["Accept"] == "text/event-stream"
    assert kwargs["json"] == payload


def test_stream_through_mock_transport():
    seen: dict[str, httpx.Request] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=SSE_BODY)

    client = make_client()
    client._client = httpx.Client(transport=httpx.MockTransport(handler))

    with client.stream_post_json("/v1/chat-messages", {"query": "hi"}) as r:
        client.raise_for_status(r)
        answers = list(iter_answers(r.iter_bytes()))

    assert answers == ["Hi", " there"]
    assert json.loads(seen["request"].content) == {"query": "hi"}
    assert seen["request"].headers["authorization"] == "Bearer app-secret"


@pytest.mark.asyncio
async def test_astream_through_mock_transport():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=SSE_BODY)

    client = make_client()
    client._aclient = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async with client.astream_post_json("/v1/chat-messages", {"query": "hi"}) as r:
        client.raise_for_status(r)
        answers = [a async for a in aiter_answers(r.aiter_bytes())]

    await client.aclose()
    assert answers == ["Hi", " there"]


def test_raise_for_status_on_unread_stream_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, stream=httpx.ByteStream(b"boom"))

    client = make_client()
    client._client = httpx.Client(transport=httpx.MockTransport(handler))

    with client.stream_post_json("/v1/chat-messages", {}) as r:
        with pytest.raises(DifyAPIError) as exc:
            client.raise_for_status(r)

    assert exc.value.status_code == 500
    assert exc.value.message == "HTTP error"


def test_debug_hooks_redact_authorization(monkeypatch, caplog):
    monkeypatch.setenv(ENV_HTTP_DEBUG, "1")
    client = make_client()
    hook = client._client.event_hooks["request"][0]

    request = httpx.Request(
        "POST",
        "https://example.com/v1/chat-messages",
        headers={"Authorization": "Bearer app-secret"},
        json={"query": "hi"},
    )
    with caplog.at_level(logging.WARNING):
        hook(request)

    assert "app-secret" not in caplog.text
    assert "REDACTED" in caplog.text
    assert '"query"' in caplog.text


def test_debug_hooks_silent_by_default(monkeypatch, caplog):
    monkeypatch.delenv(ENV_HTTP_DEBUG, raising=False)
    client = make_client()
    hook = client._client.event_hooks["request"][0]

    with caplog.at_level(logging.WARNING):
        hook(httpx.Request("GET", "https://example.com"))

    assert caplog.text == ""


def test_close_closes_sync_client():
    client = make_client()
    client.close()

    assert client._client.is_closed

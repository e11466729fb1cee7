from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from langchain_dify._errors import DifyAPIError

ENV_HTTP_DEBUG = "DIFY_HTTP_DEBUG"


@dataclass(frozen=True, slots=True)
class HttpConfig:
    base_url: str
    timeout_s: float = 120.0


def _parse_error_response(
    status_code: int,
    body_text: str,
    content_type: str,
) -> DifyAPIError:
    """
    Build a DifyAPIError from an error response.

    Dify answers errors with ``{"code": ..., "message": ..., "status": ...}``.
    Bodies that are not JSON, or not shaped like that, keep the raw text as the
    message and leave the structured fields as None.
    """
    message = "HTTP error"
    if body_text and body_text.strip():
        message = body_text

    if "application/json" not in content_type.lower():
        return DifyAPIError(status_code=status_code, message=message, body=body_text)

    try:
        data = json.loads(body_text) if body_text else {}
    except (json.JSONDecodeError, ValueError):
        return DifyAPIError(status_code=status_code, message=message, body=body_text)

    if not isinstance(data, dict):
        return DifyAPIError(
            status_code=status_code,
            message=str(data) if data else message,
            body=body_text,
        )

    error_code: str | None = None
    code = data.get("code")
    if isinstance(code, str) and code.strip():
        error_code = code.strip()

    msg = data.get("message")
    if isinstance(msg, str) and msg.strip():
        message = msg.strip()

    # Anything beyond the envelope (e.g. "params" on invalid_param) is kept as details.
    extra = {k: v for k, v in data.items() if k not in ("code", "message", "status")}

    return DifyAPIError(
        status_code=status_code,
        message=message,
        body=body_text,
        error_code=error_code,
        details=extra or None,
    )


class DifyHttpClient:
    """
    Thin HTTPX wrapper with:
    - JSON requests
    - Event-stream responses via httpx.Client.stream / AsyncClient.stream
    - Optional debug logging (DIFY_HTTP_DEBUG)
    """

    def __init__(self, *, config: HttpConfig, api_key: str) -> None:
        self._config = config
        self._api_key = api_key
        self._debug_http = os.getenv(ENV_HTTP_DEBUG, "").lower() in {"1", "true", "yes", "on"}

        def _redact_headers(headers: dict[str, Any]) -> dict[str, Any]:
            out = dict(headers)
            for k in ("authorization", "Authorization"):
                if k in out:
                    out[k] = "Bearer ***REDACTED***"
            return out

        def _log_request(request: httpx.Request) -> None:
            if not self._debug_http:
                return
            logging.warning("HTTPX REQUEST %s %s", request.method, request.url)
            logging.warning("HTTPX REQUEST headers=%s", _redact_headers(dict(request.headers)))
            if request.content:
                logging.warning("HTTPX REQUEST body=%s", request.content.decode("utf-8", "replace"))

        def _log_response(response: httpx.Response) -> bool:
            """Log status and headers; True when the body may be read for logging."""
            req = response.request
            logging.warning("HTTPX RESPONSE %s %s -> %s", req.method, req.url, response.status_code)
            logging.warning("HTTPX RESPONSE headers=%s", dict(response.headers))
            if "text/event-stream" in response.headers.get("content-type", ""):
                logging.warning("HTTPX RESPONSE body=(event-stream; not auto-logged)")
                return False
            return True

        def _log_response_sync(response: httpx.Response) -> None:
            if not self._debug_http or not _log_response(response):
                return
            try:
                response.read()
                logging.warning("HTTPX RESPONSE body=%s", response.text)
            except httpx.HTTPError as e:
                logging.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)

        async def _log_request_async(request: httpx.Request) -> None:
            _log_request(request)

        async def _log_response_async(response: httpx.Response) -> None:
            if not self._debug_http or not _log_response(response):
                return
            try:
                await response.aread()
                logging.warning("HTTPX RESPONSE body=%s", response.text)
            except httpx.HTTPError as e:
                logging.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)

        EventHooksDict = dict[str, list[Callable[..., Any]]]

        hooks_sync: EventHooksDict = {"request": [_log_request], "response": [_log_response_sync]}
        hooks_async: EventHooksDict = {"request": [_log_request_async], "response": [_log_response_async]}

        self._client = httpx.Client(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_sync)
        self._aclient = httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_async)

    def close(self) -> None:
        self._client.close()

    async def aclose(self) -> None:
        await self._aclient.aclose()

    def _headers(self, *, accept: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if accept:
            headers["Accept"] = accept
        return headers

    def _url(self, path: str) -> str:
        return f"{self._config.base_url}{path}"

    @staticmethod
    def raise_for_status(resp: httpx.Response) -> None:
        """Check the status code and raise a structured DifyAPIError."""
        if 200 <= resp.status_code < 300:
            return

        # A streamed response that was never read has no text yet.
        try:
            body_text = resp.text
        except httpx.ResponseNotRead:
            body_text = ""

        raise _parse_error_response(
            status_code=resp.status_code,
            body_text=body_text or "",
            content_type=resp.headers.get("content-type", ""),
        )

    def stream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Return an httpx stream context manager.

        Usage:
            with client.stream_post_json(...) as r:
                for chunk in r.iter_bytes():
                    ...
        """
        return self._client.stream(
            "POST", self._url(path), headers=self._headers(accept="text/event-stream"), json=payload
        )

    def astream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Return an async httpx stream context manager.

        Usage:
            async with client.astream_post_json(...) as r:
                async for chunk in r.aiter_bytes():
                    ...
        """
        return self._aclient.stream(
            "POST", self._url(path), headers=self._headers(accept="text/event-stream"), json=payload
        )

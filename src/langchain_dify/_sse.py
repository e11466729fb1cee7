"""
Incremental decoder for the Dify chat-messages event stream.

The service streams lines of the form ``data: {"event": "message", "answer": "..."}``.
Network chunks split those lines, and the UTF-8 characters inside them, at
arbitrary byte offsets. StreamDecoder reassembles complete lines and hands back
only the answer fragments; anything it cannot interpret is skipped.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Iterator

import httpx

from langchain_dify._errors import DifyError, DifyTransportError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
MESSAGE_EVENT = "message"

# Raised by httpx while a response body is being consumed.
TRANSPORT_ERRORS: tuple[type[Exception], ...] = (httpx.TransportError, httpx.StreamError)


def parse_frame(line: str) -> dict[str, Any] | None:
    """
    Decode one stream line into its JSON event.

    Returns None for blank lines, lines without the ``data:`` prefix, payloads
    that are not valid JSON and payloads that are not JSON objects.
    """
    text = line.strip()
    if not text.startswith(DATA_PREFIX):
        return None

    payload = text[len(DATA_PREFIX):].strip()
    if not payload:
        return None

    try:
        obj = json.loads(payload)
    except ValueError:
        logger.debug("Skipping malformed frame: %.200s", payload)
        return None
    return obj if isinstance(obj, dict) else None


def answer_from_event(event: dict[str, Any]) -> str | None:
    """Answer fragment of a ``message`` event; None for every other event."""
    if event.get("event") != MESSAGE_EVENT:
        return None
    answer = event.get("answer")
    if isinstance(answer, str) and answer:
        return answer
    return None


def _answer_from_line(line: str) -> str | None:
    event = parse_frame(line)
    if event is None:
        return None
    return answer_from_event(event)


class StreamDecoder:
    """
    Turns raw response chunks into answer fragments.

    One instance decodes exactly one response. ``feed`` every chunk in arrival
    order, then call ``finish`` once at end-of-stream. ``close`` discards the
    decoder when the stream is abandoned.

    Only the current incomplete line is buffered, so memory is bounded by the
    longest line rather than by the length of the stream.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        # The codec keeps incomplete multi-byte sequences between chunks.
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._finished = False

    @property
    def pending(self) -> str:
        """Decoded text not yet terminated by a newline."""
        return self._buffer

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: bytes) -> list[str]:
        """Decode a chunk and return the answers of every line it completes."""
        self._ensure_open()
        self._buffer += self._decoder.decode(chunk)

        *lines, self._buffer = self._buffer.split("\n")

        answers: list[str] = []
        for line in lines:
            answer = _answer_from_line(line)
            if answer is not None:
                answers.append(answer)
        return answers

    def finish(self) -> list[str]:
        """Parse whatever is left as a final line and exhaust the decoder."""
        self._ensure_open()
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        self._finished = True

        if not tail:
            return []
        answer = _answer_from_line(tail)
        return [answer] if answer is not None else []

    def close(self) -> None:
        """Drop any partial line without parsing it. Safe to call repeatedly."""
        self._buffer = ""
        self._decoder.reset()
        self._finished = True

    def _ensure_open(self) -> None:
        if self._finished:
            raise DifyError("StreamDecoder is exhausted; create a new one per response")


def iter_answers(chunks: Iterable[bytes] | None) -> Iterator[str]:
    """
    Decode a synchronous chunk source into answer fragments.

    Args:
        chunks: Response body chunks, e.g. ``httpx.Response.iter_bytes()``.

    Yields:
        Answer fragments in stream order.

    Raises:
        DifyTransportError: If the body is missing, or the source fails
            before reaching end-of-stream.
    """
    if chunks is None:
        raise DifyTransportError("Response body is missing")

    decoder = StreamDecoder()
    iterator = iter(chunks)
    try:
        while True:
            try:
                chunk = next(iterator)
            except StopIteration:
                break
            except TRANSPORT_ERRORS as e:
                raise DifyTransportError(f"Response stream ended abnormally: {e!r}") from e
            yield from decoder.feed(chunk)

        yield from decoder.finish()
    finally:
        decoder.close()


async def aiter_answers(chunks: AsyncIterable[bytes] | None) -> AsyncIterator[str]:
    """Async counterpart of :func:`iter_answers`, e.g. for ``aiter_bytes()``."""
    if chunks is None:
        raise DifyTransportError("Response body is missing")

    decoder = StreamDecoder()
    iterator = aiter(chunks)
    try:
        while True:
            try:
                chunk = await anext(iterator)
            except StopAsyncIteration:
                break
            except TRANSPORT_ERRORS as e:
                raise DifyTransportError(f"Response stream ended abnormally: {e!r}") from e
            for answer in decoder.feed(chunk):
                yield answer

        for answer in decoder.finish():
            yield answer
    finally:
        decoder.close()

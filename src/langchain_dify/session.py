"""
In-memory chat session on top of ChatDify.

Keeps the turns of the current session and the reply that is still streaming,
so a front end only has to render ``history`` and ``streaming_text``. Nothing
is persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Literal

from langchain_core.messages import BaseMessageChunk, HumanMessage

from langchain_dify._errors import DifyError
from langchain_dify.chat import ChatDify

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_MESSAGE = "An error occurred. Please try again."

Role = Literal["user", "assistant"]


@dataclass(frozen=True, slots=True)
class ChatTurn:
    role: Role
    content: str


class ChatSession:
    """
    One conversation with a Dify chat app.

    ``send``/``asend`` stream the reply, report each answer fragment to
    ``on_increment`` as it arrives and record the finished turn. When the
    request fails the fallback message is recorded instead; fragments already
    reported are not taken back.
    """

    def __init__(self, chat: ChatDify, *, fallback_message: str = DEFAULT_FALLBACK_MESSAGE) -> None:
        self._chat = chat
        self.fallback_message = fallback_message
        self.history: list[ChatTurn] = []
        self.streaming_text = ""

    def send(self, text: str, on_increment: Callable[[str], None] | None = None) -> str | None:
        """Send one user message. Blank input is ignored and returns None."""
        if not self._begin(text):
            return None
        try:
            for chunk in self._chat.stream([HumanMessage(content=text)]):
                self._receive(chunk, on_increment)
        except DifyError:
            logger.exception("Dify chat request failed")
            return self._end(failed=True)
        else:
            return self._end(failed=False)
        finally:
            self.streaming_text = ""

    async def asend(self, text: str, on_increment: Callable[[str], None] | None = None) -> str | None:
        if not self._begin(text):
            return None
        try:
            async for chunk in self._chat.astream([HumanMessage(content=text)]):
                self._receive(chunk, on_increment)
        except DifyError:
            logger.exception("Dify chat request failed")
            return self._end(failed=True)
        else:
            return self._end(failed=False)
        finally:
            self.streaming_text = ""

    def clear(self) -> None:
        self.history.clear()
        self.streaming_text = ""

    def _begin(self, text: str) -> bool:
        if not text.strip():
            return False
        self.history.append(ChatTurn(role="user", content=text))
        self.streaming_text = ""
        return True

    def _receive(self, chunk: BaseMessageChunk, on_increment: Callable[[str], None] | None) -> None:
        fragment = chunk.content if isinstance(chunk.content, str) else ""
        if not fragment:
            return
        self.streaming_text += fragment
        if on_increment is not None:
            on_increment(fragment)

    def _end(self, *, failed: bool) -> str:
        reply = self.fallback_message if failed else self.streaming_text
        self.history.append(ChatTurn(role="assistant", content=reply))
        return reply

from __future__ import annotations

from langchain_dify.chat import ChatDify, ChatDifyConfig
from langchain_dify.session import ChatSession, ChatTurn
from langchain_dify._errors import DifyAPIError, DifyError, DifyTransportError
from langchain_dify._sse import StreamDecoder

__all__ = [
    "ChatDify",
    "ChatDifyConfig",
    "ChatSession",
    "ChatTurn",
    "DifyAPIError",
    "DifyError",
    "DifyTransportError",
    "StreamDecoder",
]

__version__ = "0.1.0"

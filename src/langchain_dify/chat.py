from __future__ import annotations

from typing import Any, AsyncIterator, Iterator, Optional

from langchain_core.callbacks import AsyncCallbackManagerForLLMRun, CallbackManagerForLLMRun
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage, HumanMessage
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from langchain_dify._auth import AuthConfig
from langchain_dify._client import DifyHttpClient, HttpConfig
from langchain_dify._errors import DifyTransportError
from langchain_dify._sse import TRANSPORT_ERRORS, aiter_answers, iter_answers

CHAT_MESSAGES_PATH = "/v1/chat-messages"
DEFAULT_USER = "abc-123"

# ---------------------------------------------------------------------------
# Request schema subset of POST /v1/chat-messages
# ---------------------------------------------------------------------------


class ChatDifyConfig(BaseModel):
    """
    Request body for POST /v1/chat-messages (except query and response_mode).

    An empty conversation_id starts a new conversation on the Dify side.
    """

    model_config = ConfigDict(extra="forbid")

    inputs: dict[str, Any] = Field(default_factory=dict)
    user: str = DEFAULT_USER
    conversation_id: str = ""
    auto_generate_name: Optional[bool] = None


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


def _extract_text_from_content_blocks(obj: Any) -> str:
    """Join plain strings and 'text' blocks; images and other blocks are ignored."""
    if not isinstance(obj, list):
        return ""

    parts: list[str] = []
    for block in obj:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            txt = block.get("text")
            if isinstance(txt, str) and txt:
                parts.append(txt)
    return "".join(parts)


def _query_from_messages(messages: list[BaseMessage]) -> str:
    """
    Dify keeps the conversation server side, so only the latest user message
    is sent as the query.
    """
    for message in reversed(messages):
        if not isinstance(message, HumanMessage):
            continue
        if isinstance(message.content, str):
            return message.content
        return _extract_text_from_content_blocks(message.content)
    raise ValueError("ChatDify needs at least one HumanMessage to build the query.")


def _chat_result_from_answers(answers: list[str]) -> ChatResult:
    message = AIMessage(content="".join(answers))
    return ChatResult(generations=[ChatGeneration(message=message)])


# ------------------------------------------------------------------------------------
# Chat wrapper for Dify chat apps, streaming via .stream/.astream
# ------------------------------------------------------------------------------------


class ChatDify(BaseChatModel):
    """
    LangChain ChatModel for a Dify chat app: POST /v1/chat-messages

    The app is always called in streaming mode:
    - .stream/.astream emit one chunk per answer fragment, in stream order
    - .invoke/.ainvoke join the same fragments into a single AIMessage
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    api_key: Optional[str] = Field(default=None, exclude=True, repr=False)
    base_url: Optional[str] = None
    timeout_s: float = 120.0

    request_defaults: ChatDifyConfig = Field(default_factory=ChatDifyConfig)

    _http: DifyHttpClient = PrivateAttr()

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_s: float = 120.0,
        request_defaults: ChatDifyConfig | None = None,
        **kwargs: Any,
    ) -> None:
        rd_keys = set(ChatDifyConfig.model_fields.keys())
        rd_kwargs = {k: v for k, v in kwargs.items() if k in rd_keys}
        lc_kwargs = {k: v for k, v in kwargs.items() if k not in rd_keys}

        if request_defaults is not None and rd_kwargs:
            raise ValueError("Do not mix request_defaults=... with loose request body parameters.")

        rd = request_defaults or ChatDifyConfig(**rd_kwargs)

        auth = AuthConfig.from_env_or_value(api_key, base_url)

        super().__init__(
            api_key=api_key,
            base_url=auth.base_url,
            timeout_s=timeout_s,
            request_defaults=rd,
            **lc_kwargs,
        )

        self._http = DifyHttpClient(
            config=HttpConfig(base_url=auth.base_url, timeout_s=self.timeout_s),
            api_key=auth.api_key,
        )

    def close(self) -> None:
        """Close the underlying HTTP clients."""
        self._http.close()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def _llm_type(self) -> str:
        return "dify-chat"

    @property
    def _identifying_params(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "timeout_s": self.timeout_s,
            "user": self.request_defaults.user,
        }

    def _build_payload(self, messages: list[BaseMessage], stop: list[str] | None, **kwargs: Any) -> dict[str, Any]:
        """
        Build the request payload.
        Keyword arguments that are not request body fields (e.g. "stream_mode"
        from the Runnable layer) are ignored.
        """
        if stop:
            raise ValueError("Dify chat-messages does not support stop sequences.")

        payload: dict[str, Any] = {
            "query": _query_from_messages(messages),
            "response_mode": "streaming",
        }
        payload.update(self.request_defaults.model_dump(exclude_none=True))

        provider_kwargs = {
            k: v for k, v in kwargs.items() if v is not None and k in ChatDifyConfig.model_fields
        }
        if provider_kwargs:
            validated = ChatDifyConfig(**provider_kwargs)
            payload.update(validated.model_dump(exclude_none=True, exclude_unset=True))

        return payload

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        answers = [chunk.text for chunk in self._stream(messages, stop, run_manager, **kwargs)]
        return _chat_result_from_answers(answers)

    async def _agenerate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        answers = [chunk.text async for chunk in self._astream(messages, stop, run_manager, **kwargs)]
        return _chat_result_from_answers(answers)

    def _stream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> Iterator[ChatGenerationChunk]:
        payload = self._build_payload(messages, stop, **kwargs)

        try:
            with self._http.stream_post_json(CHAT_MESSAGES_PATH, payload) as r:
                if r.status_code >= 400:
                    r.read()
                self._http.raise_for_status(r)

                for text in iter_answers(r.iter_bytes()):
                    yield ChatGenerationChunk(message=AIMessageChunk(content=text))
        except TRANSPORT_ERRORS as e:
            # Connecting or reading the error body failed before any chunk was decoded.
            raise DifyTransportError(f"Could not open the response stream: {e!r}") from e

    async def _astream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatGenerationChunk]:
        payload = self._build_payload(messages, stop, **kwargs)

        try:
            async with self._http.astream_post_json(CHAT_MESSAGES_PATH, payload) as r:
                if r.status_code >= 400:
                    await r.aread()
                self._http.raise_for_status(r)

                async for text in aiter_answers(r.aiter_bytes()):
                    yield ChatGenerationChunk(message=AIMessageChunk(content=text))
        except TRANSPORT_ERRORS as e:
            raise DifyTransportError(f"Could not open the response stream: {e!r}") from e

import pytest
from langchain_core.messages import HumanMessage

from langchain_dify import ChatDify, ChatSession
from langchain_dify._errors import DifyAPIError


@pytest.mark.integration
def test_chat_streaming_collect() -> None:
    model = ChatDify()

    pieces = [chunk.content for chunk in model.stream([HumanMessage(content="Say: hello")])]

    assert pieces
    assert all(isinstance(p, str) and p for p in pieces)
    assert "".join(pieces).strip()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_chat_astreaming_collect() -> None:
    model = ChatDify()

    pieces = [chunk.content async for chunk in model.astream([HumanMessage(content="Say: hello")])]

    assert "".join(pieces).strip()


@pytest.mark.integration
def test_session_round_trip() -> None:
    session = ChatSession(ChatDify())
    fragments: list[str] = []

    reply = session.send("Say: hello", on_increment=fragments.append)

    assert reply == "".join(fragments)
    assert [t.role for t in session.history] == ["user", "assistant"]


@pytest.mark.integration
def test_invalid_key_raises_auth_error() -> None:
    model = ChatDify(api_key="app-invalid-key")

    with pytest.raises(DifyAPIError) as exc:
        model.invoke([HumanMessage(content="hi")])

    assert exc.value.is_auth_error

"""Tests for the chat turn state machine."""

import pytest

from app.core.auth import User
from app.core.errors import (
    InvalidRequestError,
    LLMProviderError,
    ModelNotFoundError,
    PersistenceError,
    UnauthorizedError,
)
from app.services.agent import Finish
from app.services.chat.messages import ClientMessage
from app.services.chat.stream_data import AnnotationItem
from app.services.chat.turn import ChatTurn, TurnState
from app.services.llm.base import StepFinish, TextDelta, ToolCall
from app.services.store import TranscriptStore
from tests.conftest import USER_ID, test_engine
from tests.fakes import ScriptedProvider


class CountingStreamData:
    """Wraps a turn's StreamData to count closes and catch late appends."""

    def __init__(self, stream_data):
        self.inner = stream_data
        self.closes = 0
        self.appends_after_close = 0
        original_close, original_put = stream_data.close, stream_data._put

        def close():
            self.closes += 1
            original_close()

        def put(item):
            if stream_data.closed:
                self.appends_after_close += 1
            original_put(item)

        stream_data.close = close
        stream_data._put = put


def _turn(store, provider, messages=None, model_id="gemini-flash", user_id=USER_ID, **kwargs):
    if messages is None:
        messages = [ClientMessage(role="user", content="hello")]
    turn = ChatTurn(
        chat_id="chat-1",
        user=User(id=user_id),
        model_id=model_id,
        messages=messages,
        store=store,
        provider_factory=lambda api_identifier: provider,
        **kwargs,
    )
    return turn, CountingStreamData(turn.stream_data)


async def _consume(turn):
    return [part async for part in turn.stream()]


async def test_successful_turn_persists_and_closes_once(store, provider):
    turn, counter = _turn(store, provider)
    await turn.prepare()
    assert turn.state == TurnState.PERSIST_USER_MESSAGE

    parts = await _consume(turn)
    assert isinstance(parts[-1], Finish)
    assert turn.state == TurnState.CLOSE
    assert counter.closes == 1
    assert counter.appends_after_close == 0

    messages = store.get_messages_by_chat_id("chat-1")
    assert [m.role for m in messages] == ["user", "assistant"]
    assert turn.saved_message_ids == [messages[1].id]


@pytest.mark.parametrize("model_id,messages,error", [
    ("nonexistent", None, ModelNotFoundError),
    ("gemini-flash", [], InvalidRequestError),
    ("gemini-flash", [ClientMessage(role="assistant", content="hi")], InvalidRequestError),
])
async def test_validation_failures_write_nothing_and_close(store, provider, model_id, messages, error):
    turn, counter = _turn(store, provider, messages=messages, model_id=model_id)
    with pytest.raises(error):
        await turn.prepare()

    assert counter.closes == 1
    assert store.get_chat_by_id("chat-1") is None
    assert provider.calls == []


async def test_other_users_chat_is_rejected_before_any_write(store, provider):
    store.save_chat("chat-1", "someone-else", "Theirs")
    turn, counter = _turn(store, provider)
    with pytest.raises(UnauthorizedError):
        await turn.prepare()

    assert store.get_messages_by_chat_id("chat-1") == []
    assert counter.closes == 1


async def test_title_falls_back_to_message_text(store):
    provider = ScriptedProvider(title=LLMProviderError("down"))
    turn, _ = _turn(store, provider, messages=[ClientMessage(role="user", content="plan my week")])
    await turn.prepare()
    assert store.get_chat_by_id("chat-1").title == "plan my week"


class RacingStore(TranscriptStore):
    """The chat appears between the lookup and the insert."""

    def __init__(self, engine, owner):
        super().__init__(engine)
        self.owner = owner
        self.lookups = 0

    def get_chat_by_id(self, chat_id):
        self.lookups += 1
        if self.lookups == 1:
            return None
        return super().get_chat_by_id(chat_id)

    def save_chat(self, chat_id, user_id, title):
        super().save_chat(chat_id, self.owner, "Winner")
        return super().save_chat(chat_id, user_id, title)


async def test_chat_creation_race_keeps_going_for_same_owner(provider):
    store = RacingStore(test_engine, owner=USER_ID)
    turn, _ = _turn(store, provider)
    await turn.prepare()

    assert store.get_chat_by_id("chat-1").title == "Winner"
    assert [m.role for m in store.get_messages_by_chat_id("chat-1")] == ["user"]


async def test_chat_creation_race_against_other_owner_is_unauthorized(provider):
    store = RacingStore(test_engine, owner="someone-else")
    turn, _ = _turn(store, provider)
    with pytest.raises(UnauthorizedError):
        await turn.prepare()
    assert store.get_messages_by_chat_id("chat-1") == []


class FailingResponseStore(TranscriptStore):
    """Stores the user message, then fails to store the reply."""

    def save_messages(self, chat_id, messages):
        if any(m.role != "user" for m in messages):
            raise PersistenceError("disk full")
        super().save_messages(chat_id, messages)


async def test_response_persistence_failure_is_swallowed(provider):
    store = FailingResponseStore(test_engine)
    turn, counter = _turn(store, provider)
    await turn.prepare()

    parts = await _consume(turn)
    assert "".join(p.text for p in parts if isinstance(p, TextDelta)) == "Hello from agent"
    assert isinstance(parts[-1], Finish)
    assert counter.closes == 1
    assert turn.saved_message_ids == []
    assert [m.role for m in store.get_messages_by_chat_id("chat-1")] == ["user"]


async def test_provider_failure_propagates_and_closes(store):
    provider = ScriptedProvider(steps=[[TextDelta("par"), LLMProviderError("boom")]])
    turn, counter = _turn(store, provider)
    await turn.prepare()

    with pytest.raises(LLMProviderError):
        await _consume(turn)
    assert counter.closes == 1
    assert turn.state == TurnState.CLOSE


async def test_client_disconnect_still_closes(store, provider):
    turn, counter = _turn(store, provider)
    await turn.prepare()

    stream = turn.stream()
    await stream.__anext__()
    await stream.aclose()
    assert counter.closes == 1


async def test_tool_outside_active_capabilities_gets_error_result(store):
    provider = ScriptedProvider(steps=[
        [ToolCall("c1", "getWeather", {"latitude": 1.0, "longitude": 2.0})],
    ])
    turn, _ = _turn(store, provider, capabilities=["document"], max_steps=1)
    await turn.prepare()
    await _consume(turn)

    by_role = {m.role: m for m in store.get_messages_by_chat_id("chat-1")}
    assert set(by_role) == {"user", "assistant", "tool"}
    assert "Unknown tool: getWeather" in by_role["tool"].content


async def test_each_assistant_message_gets_an_annotation(store):
    provider = ScriptedProvider(steps=[
        [TextDelta("Let me write that."), ToolCall("c1", "createDocument", {"title": "Plan"})],
        [TextDelta("Done."), StepFinish("stop")],
    ])
    turn, _ = _turn(store, provider)
    await turn.prepare()
    await _consume(turn)

    items = [item async for item in turn.stream_data]
    annotations = [i.value["messageIdFromServer"] for i in items if isinstance(i, AnnotationItem)]
    stored = store.get_messages_by_chat_id("chat-1")
    assert sorted(annotations) == sorted(m.id for m in stored if m.role == "assistant")
    assert len(annotations) == 2

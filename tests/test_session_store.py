"""Session stores keep per-session flow and history."""

import fakeredis
import pytest

from conversation_router.history import Speaker
from conversation_router.models import FlowName
from conversation_router.session_store import InMemorySessionStore, RedisSessionStore


@pytest.fixture(params=["memory", "redis"])
def store(request):
    if request.param == "memory":
        return InMemorySessionStore()
    return RedisSessionStore(fakeredis.FakeRedis(decode_responses=True))


def test_unknown_session_starts_empty(store):
    state = store.get("fresh")
    assert state.active_flow is FlowName.NONE
    assert len(state.history) == 0


def test_save_and_reload(store):
    state = store.get("s1")
    state.active_flow = FlowName.INTERVIEW
    state.history.append(Speaker.AGENT, "What is your name?")
    state.history.append(Speaker.USER, "Alice")
    store.save("s1", state)

    loaded = store.get("s1")
    assert loaded.active_flow is FlowName.INTERVIEW
    assert [turn.text for turn in loaded.history] == ["What is your name?", "Alice"]


def test_reset_discards_state(store):
    state = store.get("s1")
    state.active_flow = FlowName.PLACEHOLDER
    state.history.append(Speaker.USER, "hi")
    store.save("s1", state)

    store.reset("s1")

    assert store.get("s1").active_flow is FlowName.NONE
    assert len(store.get("s1").history) == 0


def test_corrupt_redis_payload_is_discarded():
    client = fakeredis.FakeRedis(decode_responses=True)
    client.set("session:broken", "{not json")
    state = RedisSessionStore(client).get("broken")
    assert state.active_flow is FlowName.NONE

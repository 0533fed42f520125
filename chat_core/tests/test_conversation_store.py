import json
from datetime import datetime, timedelta, timezone

import pytest

from chat_core.domain.conversation import ACTIVE_CHAT_KEY, CHATS_KEY, SENTINEL_TITLE
from chat_core.domain.exceptions import NotFoundError, StoreWriteError
from chat_core.domain.models import Message
from chat_core.infrastructure.storage.conversation_store import ConversationStore
from chat_core.infrastructure.storage.kv_store import InMemoryKeyValueStore


def _clock(step_seconds=1):
    state = {"now": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)}

    def tick():
        current = state["now"]
        state["now"] = current + timedelta(seconds=step_seconds)
        return current

    return tick


def _store(kv=None, clock=None):
    store = ConversationStore(kv if kv is not None else InMemoryKeyValueStore(), clock=clock or _clock())
    store.hydrate()
    return store


def test_hydrate_empty_storage_bootstraps_one_conversation():
    kv = InMemoryKeyValueStore()
    store = _store(kv)
    assert len(store) == 1
    assert store.active.title == SENTINEL_TITLE
    assert store.active.messages == []
    assert kv.get(ACTIVE_CHAT_KEY) == store.active_id
    assert len(json.loads(kv.get(CHATS_KEY))) == 1


def test_append_keeps_order_and_derives_title_once():
    store = _store()
    cid = store.active_id
    store.append(cid, Message(role="user", content="Explain how photosynthesis works in plants"))
    assert store.get(cid).title == SENTINEL_TITLE

    store.append(cid, Message(role="assistant", content="Plants use light."))
    assert store.get(cid).title == "Explain how photosynthesi..."

    store.append(cid, Message(role="user", content="Something else entirely"))
    store.append(cid, Message(role="assistant", content="ok"))
    conv = store.get(cid)
    assert conv.title == "Explain how photosynthesi..."
    assert [m.content for m in conv.messages] == [
        "Explain how photosynthesis works in plants",
        "Plants use light.",
        "Something else entirely",
        "ok",
    ]


def test_short_first_message_becomes_title_verbatim():
    store = _store()
    cid = store.active_id
    store.append(cid, Message(role="user", content="Hi"))
    store.append(cid, Message(role="assistant", content="Hello!"))
    assert store.get(cid).title == "Hi"


def test_state_round_trips_through_fresh_store():
    kv = InMemoryKeyValueStore()
    store = _store(kv)
    first = store.active_id
    store.append(first, Message(role="user", content="Draw a cat"))
    store.append(first, Message(role="assistant", content="https://img.test/cat.png", type="image", caption="a cat"))
    second = store.create("image")
    store.switch_active(first)

    reloaded = _store(kv)
    assert reloaded.active_id == first
    assert [c.id for c in reloaded.list_conversations()] == [second, first]
    conv = reloaded.get(first)
    assert conv.title == "Draw a cat"
    assert conv.messages[1] == Message(role="assistant", content="https://img.test/cat.png", type="image", caption="a cat")
    assert conv.created_at == store.get(first).created_at
    assert reloaded.get(second).mode == "image"


def test_malformed_blob_is_treated_as_empty():
    kv = InMemoryKeyValueStore({CHATS_KEY: "{oops", ACTIVE_CHAT_KEY: "chat_1"})
    store = _store(kv)
    assert len(store) == 1
    assert store.active.messages == []


def test_malformed_records_are_skipped():
    records = [
        {"id": "chat_1", "title": "Good", "createdAt": "2024-01-01T00:00:00.000Z", "messages": []},
        {"title": "no id"},
        {"id": "chat_2", "createdAt": "2024-01-02T00:00:00Z", "messages": [{"role": "robot", "content": "x"}]},
        {"id": "chat_3", "title": 123, "createdAt": "2024-01-03T00:00:00Z", "messages": []},
        {
            "id": "chat_4",
            "createdAt": "2024-01-04T00:00:00Z",
            "messages": [{"role": "assistant", "content": "https://img.test/a.png", "type": "image", "caption": 5}],
        },
    ]
    kv = InMemoryKeyValueStore({CHATS_KEY: json.dumps(records), ACTIVE_CHAT_KEY: "chat_2"})
    store = _store(kv)
    assert [c.id for c in store.list_conversations()] == ["chat_1"]
    assert store.active_id == "chat_1"


def test_list_conversations_newest_first():
    store = _store()
    a = store.active_id
    b = store.create()
    c = store.create()
    assert [conv.id for conv in store.list_conversations()] == [c, b, a]


def test_create_ids_are_unique_for_same_timestamp():
    store = _store(clock=_clock(step_seconds=0))
    ids = {store.active_id, store.create(), store.create()}
    assert len(ids) == 3


def test_switch_active_unknown_id_raises():
    store = _store()
    before = store.active_id
    with pytest.raises(NotFoundError):
        store.switch_active("chat_missing")
    assert store.active_id == before


def test_clear_empties_messages_but_keeps_title():
    store = _store()
    cid = store.active_id
    store.append(cid, Message(role="user", content="Hello"))
    store.append(cid, Message(role="assistant", content="Hi"))
    store.clear(cid)
    assert store.get(cid).messages == []
    assert store.get(cid).title == "Hello"


def test_delete_active_falls_back_to_newest_remaining():
    store = _store()
    a = store.active_id
    b = store.create()
    c = store.create()
    store.switch_active(b)
    store.delete(b)
    assert b not in store
    assert store.active_id == c

    store.delete(c)
    store.delete(a)
    assert len(store) == 1
    assert store.active.title == SENTINEL_TITLE


class FailingKeyValueStore(InMemoryKeyValueStore):
    def __init__(self):
        super().__init__()
        self.fail = False

    def set(self, key, value):
        if self.fail:
            raise StoreWriteError(code="STORE_WRITE_ERROR", message="disk full")
        super().set(key, value)


def test_failed_write_leaves_memory_unchanged():
    kv = FailingKeyValueStore()
    store = _store(kv)
    cid = store.active_id
    store.append(cid, Message(role="user", content="Hello"))

    kv.fail = True
    with pytest.raises(StoreWriteError):
        store.append(cid, Message(role="assistant", content="Hi"))
    assert [m.content for m in store.get(cid).messages] == ["Hello"]
    assert store.get(cid).title == SENTINEL_TITLE

    with pytest.raises(StoreWriteError):
        store.clear(cid)
    assert [m.content for m in store.get(cid).messages] == ["Hello"]

    kv.fail = False
    assert [m["content"] for m in json.loads(kv.get(CHATS_KEY))[0]["messages"]] == ["Hello"]

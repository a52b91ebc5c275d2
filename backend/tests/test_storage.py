"""Tests for the local chat session store."""

import json

import pytest

from azure_chat.errors import InvalidFormat, StorageFull
from azure_chat.models.messages import ChatMessage
from azure_chat.models.sessions import ChatSession
from azure_chat.storage.backends import JsonFileStorage, MemoryStorage
from azure_chat.storage.store import (
    CURRENT_SESSION_KEY,
    SESSIONS_KEY,
    ChatStorage,
)


def make_session(session_id: str, updated_at: int, messages: int = 0, content: str = "hi") -> ChatSession:
    return ChatSession(
        id=session_id,
        title=f"title {session_id}",
        created_at=updated_at,
        updated_at=updated_at,
        messages=[
            ChatMessage(id=f"{session_id}-m{i}", role="user", content=f"{content} {i}", timestamp=i)
            for i in range(messages)
        ],
    )


def stored_ids(storage: ChatStorage) -> set[str]:
    return {entry.id for entry in storage.list_sessions()}


def test_save_and_get_round_trip(storage: ChatStorage) -> None:
    session = make_session("a", 1000, messages=2)
    storage.save_session(session)

    loaded = storage.get_session("a")
    assert loaded is not None
    assert [m.content for m in loaded.messages] == ["hi 0", "hi 1"]

    [entry] = storage.list_sessions()
    assert entry.id == "a"
    assert entry.title == "title a"
    assert entry.updated_at == 1000


def test_index_holds_no_message_bodies(storage: ChatStorage) -> None:
    storage.save_session(make_session("a", 1000, messages=3))
    index = json.loads(storage.backend.get_item(SESSIONS_KEY))
    assert index == [
        {"id": "a", "title": "title a", "createdAt": 1000, "updatedAt": 1000, "model": "gpt-4.1"}
    ]


def test_save_upserts_index_entry(storage: ChatStorage) -> None:
    session = make_session("a", 1000)
    storage.save_session(session)
    session.title = "renamed"
    session.updated_at = 2000
    storage.save_session(session)

    entries = storage.list_sessions()
    assert len(entries) == 1
    assert entries[0].title == "renamed"
    assert entries[0].updated_at == 2000


def test_messages_truncated_to_most_recent(storage: ChatStorage) -> None:
    session = make_session("a", 1000, messages=130)
    storage.save_session(session)

    loaded = storage.get_session("a")
    assert len(loaded.messages) == 100
    assert loaded.messages[0].id == "a-m30"
    assert loaded.messages[-1].id == "a-m129"
    assert [m.timestamp for m in loaded.messages] == list(range(30, 130))


def test_session_count_capped_and_oldest_evicted(storage: ChatStorage) -> None:
    for i in range(50):
        storage.save_session(make_session(f"s{i}", 1000 + i))
    assert len(storage.list_sessions()) == 50

    storage.save_session(make_session("s50", 5000))

    ids = stored_ids(storage)
    assert len(ids) == 50
    assert "s0" not in ids
    assert "s50" in ids
    assert storage.get_session("s0") is None


def test_survivors_are_most_recently_updated(storage: ChatStorage) -> None:
    # save out of order so insertion order and recency differ
    timestamps = [37, 5, 90, 12, 61, 44, 3, 78, 25, 56]
    small = ChatStorage(MemoryStorage(), max_sessions=4)
    for ts in timestamps:
        small.save_session(make_session(f"s{ts}", ts))

    assert stored_ids(small) == {"s90", "s78", "s61", "s56"}


def test_byte_budget_evicts_oldest_but_keeps_one() -> None:
    storage = ChatStorage(MemoryStorage(), max_storage_bytes=20_000)
    for i in range(5):
        storage.save_session(make_session(f"s{i}", 1000 + i, messages=10, content="x" * 200))

    ids = stored_ids(storage)
    assert "s4" in ids
    assert "s0" not in ids
    assert storage.storage_size() <= 20_000 or len(ids) == 1

    tiny = ChatStorage(MemoryStorage(), max_storage_bytes=10)
    tiny.save_session(make_session("only", 1000, messages=5))
    assert stored_ids(tiny) == {"only"}


def test_delete_is_idempotent(storage: ChatStorage) -> None:
    storage.save_session(make_session("a", 1000))
    storage.save_session(make_session("b", 2000))

    storage.delete_session("a")
    once = dict((k, storage.backend.get_item(k)) for k in storage.backend.keys())
    storage.delete_session("a")
    twice = dict((k, storage.backend.get_item(k)) for k in storage.backend.keys())

    assert once == twice
    assert stored_ids(storage) == {"b"}
    assert storage.get_session("a") is None


def test_delete_unknown_id_is_noop(storage: ChatStorage) -> None:
    storage.delete_session("missing")
    assert storage.list_sessions() == []


def test_corrupt_index_lists_empty(storage: ChatStorage, caplog: pytest.LogCaptureFixture) -> None:
    storage.backend.set_item(SESSIONS_KEY, "{not json")
    assert storage.list_sessions() == []
    assert "corrupt" in caplog.text


def test_corrupt_record_is_absent(storage: ChatStorage) -> None:
    storage.save_session(make_session("a", 1000))
    storage.backend.set_item("azure-chat-pwa:session:a", '{"id": "a", "messages": 7}')
    assert storage.get_session("a") is None


def test_save_rebuilds_corrupt_index(storage: ChatStorage) -> None:
    storage.save_session(make_session("a", 1000))
    storage.save_session(make_session("b", 2000))
    storage.backend.set_item(SESSIONS_KEY, "garbage")

    storage.save_session(make_session("c", 3000))

    assert stored_ids(storage) == {"a", "b", "c"}


def test_current_session_pointer(storage: ChatStorage) -> None:
    assert storage.get_current_session_id() is None
    storage.set_current_session_id("a")
    assert storage.get_current_session_id() == "a"
    storage.clear_current_session_id()
    assert storage.get_current_session_id() is None


def test_export_import_round_trip(storage: ChatStorage) -> None:
    storage.save_session(make_session("a", 1000, messages=3))
    storage.save_session(make_session("b", 2000, messages=1))
    exported = storage.export_all()
    assert exported.startswith("[\n  {")

    target = ChatStorage(MemoryStorage())
    assert target.import_all(exported) == 2

    assert stored_ids(target) == {"a", "b"}
    for session_id in ("a", "b"):
        original = storage.get_session(session_id)
        copy = target.get_session(session_id)
        assert [m.model_dump() for m in copy.messages] == [m.model_dump() for m in original.messages]


def test_import_rejects_unparseable_data(storage: ChatStorage) -> None:
    storage.save_session(make_session("a", 1000))
    with pytest.raises(InvalidFormat):
        storage.import_all("this is not json")
    with pytest.raises(InvalidFormat):
        storage.import_all('{"id": "x", "messages": []}')
    assert stored_ids(storage) == {"a"}


def test_import_skips_malformed_records(storage: ChatStorage) -> None:
    data = json.dumps(
        [
            {"id": "good", "messages": [{"id": "m", "role": "user", "content": "hey", "timestamp": 1}]},
            {"messages": []},
            {"id": "no-messages"},
            {"id": "bad-role", "messages": [{"role": "robot", "content": "x"}]},
            "not a record",
        ]
    )
    assert storage.import_all(data) == 1
    assert stored_ids(storage) == {"good"}
    assert storage.get_session("good").title == "New Chat"


def test_clear_all_leaves_foreign_keys(storage: ChatStorage) -> None:
    storage.backend.set_item("other-app:settings", "{}")
    storage.save_session(make_session("a", 1000))
    storage.set_current_session_id("a")

    storage.clear_all()

    assert list(storage.backend.keys()) == ["other-app:settings"]
    assert storage.backend.get_item(CURRENT_SESSION_KEY) is None


def test_quota_triggers_eviction_then_retry() -> None:
    backend = MemoryStorage(quota_bytes=6_000)
    storage = ChatStorage(backend)
    storage.save_session(make_session("old", 1000, messages=4, content="o" * 200))
    storage.save_session(make_session("new", 2000, messages=4, content="n" * 200))

    storage.save_session(make_session("newest", 3000, messages=4, content="z" * 200))

    ids = stored_ids(storage)
    assert "newest" in ids
    assert "old" not in ids


def test_quota_failure_after_retry_raises_storage_full() -> None:
    storage = ChatStorage(MemoryStorage(quota_bytes=500))
    with pytest.raises(StorageFull):
        storage.save_session(make_session("huge", 1000, messages=3, content="x" * 500))
    assert storage.list_sessions() == []
    assert storage.get_session("huge") is None


def test_json_file_storage_persists_across_instances(tmp_path) -> None:
    path = tmp_path / "store.json"
    first = ChatStorage(JsonFileStorage(path))
    first.save_session(make_session("a", 1000, messages=2))
    first.set_current_session_id("a")

    second = ChatStorage(JsonFileStorage(path))
    assert second.get_current_session_id() == "a"
    assert len(second.get_session("a").messages) == 2


def test_json_file_storage_recovers_from_corrupt_file(tmp_path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{{{ broken", encoding="utf-8")

    storage = ChatStorage(JsonFileStorage(path))

    assert storage.list_sessions() == []
    assert (tmp_path / "store.json.corrupt").exists()
    storage.save_session(make_session("a", 1000))
    assert stored_ids(storage) == {"a"}


def test_json_file_storage_read_error_keeps_file(tmp_path) -> None:
    # a directory in place of the file makes the read fail with an OSError
    path = tmp_path / "store.json"
    path.mkdir()

    with pytest.raises(OSError):
        JsonFileStorage(path)

    assert path.is_dir()
    assert not (tmp_path / "store.json.corrupt").exists()

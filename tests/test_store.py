"""Tests for the in-memory session record store."""

from dataclasses import replace

import pytest

from roadsession_core.store import InMemorySessionRecordStore

from conftest import make_record


def test_put_indexes_by_id_correlation_and_user(store: InMemorySessionRecordStore) -> None:
    record = make_record("s1")
    store.put(record)

    assert store.get_by_id("s1") == record
    assert store.get_by_correlation("corr-s1") == record
    assert store.list_by_user("u1") == [record]
    assert store.check_integrity() == []


def test_missing_lookups_return_none(store: InMemorySessionRecordStore) -> None:
    assert store.get_by_id("nope") is None
    assert store.get_by_correlation("nope") is None
    assert store.list_by_user("nobody") == []


def test_list_by_user_keeps_insertion_order(store: InMemorySessionRecordStore) -> None:
    for sid in ("s3", "s1", "s2"):
        store.put(make_record(sid))
    store.put(make_record("other", user_id="u2"))

    assert [r.session_id for r in store.list_by_user("u1")] == ["s3", "s1", "s2"]


def test_replacing_a_record_moves_the_correlation_index(store: InMemorySessionRecordStore) -> None:
    store.put(make_record("s1"))
    store.put(replace(store.get_by_id("s1"), token_correlation="fresh"))

    assert store.get_by_correlation("corr-s1") is None
    assert store.get_by_correlation("fresh").session_id == "s1"
    assert store.list_by_user("u1") == [store.get_by_id("s1")]
    assert store.check_integrity() == []


def test_put_rejects_reassigning_a_session_to_another_user(store: InMemorySessionRecordStore) -> None:
    store.put(make_record("s1"))

    with pytest.raises(ValueError):
        store.put(make_record("s1", user_id="u2"))


def test_update_replaces_atomically(store: InMemorySessionRecordStore) -> None:
    store.put(make_record("s1"))

    updated = store.update("s1", lambda r: replace(r, token_correlation="rotated"))

    assert updated.token_correlation == "rotated"
    assert store.get_by_correlation("rotated") == updated
    assert store.get_by_correlation("corr-s1") is None
    assert store.check_integrity() == []


def test_update_returning_none_leaves_record(store: InMemorySessionRecordStore) -> None:
    original = make_record("s1")
    store.put(original)

    assert store.update("s1", lambda r: None) == original
    assert store.get_by_id("s1") == original


def test_update_that_raises_writes_nothing(store: InMemorySessionRecordStore) -> None:
    original = make_record("s1")
    store.put(original)

    def boom(record):
        raise RuntimeError("abort")

    with pytest.raises(RuntimeError):
        store.update("s1", boom)
    assert store.get_by_id("s1") == original


def test_update_of_missing_record_returns_none(store: InMemorySessionRecordStore) -> None:
    calls = []
    assert store.update("missing", lambda r: calls.append(r)) is None
    assert calls == []


def test_update_cannot_change_identity(store: InMemorySessionRecordStore) -> None:
    store.put(make_record("s1"))

    with pytest.raises(ValueError):
        store.update("s1", lambda r: replace(r, session_id="s2"))


def test_delete_removes_from_every_index(store: InMemorySessionRecordStore) -> None:
    store.put(make_record("s1"))

    assert store.delete("s1") is True
    assert store.delete("s1") is False
    assert store.get_by_id("s1") is None
    assert store.get_by_correlation("corr-s1") is None
    assert store.list_by_user("u1") == []
    assert store.stats() == {
        "total_sessions": 0,
        "unique_users": 0,
        "token_index_entries": 0,
        "storage_type": "memory",
    }


def test_for_each_action_may_delete_without_deadlock(store: InMemorySessionRecordStore) -> None:
    store.put(make_record("keep"))
    store.put(make_record("drop1", is_active=False))
    store.put(make_record("drop2", user_id="u2", is_active=False))

    count = store.for_each(lambda r: not r.is_active, lambda r: store.delete(r.session_id))

    assert count == 2
    assert [r.session_id for r in store.records()] == ["keep"]
    assert store.check_integrity() == []


def test_user_guard_is_reentrant_and_released(store: InMemorySessionRecordStore) -> None:
    with store.user_guard("u1"):
        with store.user_guard("u1"):
            store.put(make_record("s1"))

    assert store.count == 1
    assert store._user_locks == {}
    assert store._user_lock_refs == {}


def test_stats_counts_users_and_tokens(store: InMemorySessionRecordStore) -> None:
    store.put(make_record("a"))
    store.put(make_record("b"))
    store.put(make_record("c", user_id="u2"))

    stats = store.stats()

    assert stats["total_sessions"] == 3
    assert stats["unique_users"] == 2
    assert stats["token_index_entries"] == 3

from __future__ import annotations

import pytest

from statebook.errors import InvalidArgument, UnsupportedOperation
from statebook.store import StateStore
from statebook.store.memory import MemoryStateStore


def test_memory_store_satisfies_protocol(store: MemoryStateStore):
    assert isinstance(store, StateStore)
    assert store.supports_rich_query is False


def test_put_get_delete(store: MemoryStateStore):
    store.put_state("a", b"1")
    assert store.get_state("a") == b"1"
    store.del_state("a")
    assert store.get_state("a") is None


def test_put_rejects_empty_key(store: MemoryStateStore):
    with pytest.raises(InvalidArgument):
        store.put_state("", b"1")


def test_range_is_half_open_and_ordered(store: MemoryStateStore):
    for key in ["c", "a", "d", "b"]:
        store.put_state(key, key.encode())
    with store.get_state_by_range("b", "d") as results:
        assert [kv.key for kv in results] == ["b", "c"]
    with store.get_state_by_range("b", None, limit=2) as results:
        assert [kv.key for kv in results] == ["b", "c"]


def test_range_iterator_is_a_snapshot(store: MemoryStateStore):
    store.put_state("a", b"1")
    store.put_state("b", b"2")
    with store.get_state_by_range("a", None) as results:
        store.put_state("b", b"changed")
        store.put_state("c", b"3")
        assert [(kv.key, kv.value) for kv in results] == [("a", b"1"), ("b", b"2")]


def test_iterators_are_released_on_close(store: MemoryStateStore):
    store.put_state("a", b"1")
    with pytest.raises(RuntimeError):
        with store.get_state_by_range("a", None):
            assert store.open_iterators == 1
            raise RuntimeError("boom")
    assert store.open_iterators == 0


def test_closed_iterator_yields_nothing(store: MemoryStateStore):
    store.put_state("a", b"1")
    iterator = store.get_state_by_range("a", None)
    iterator.close()
    iterator.close()
    assert iterator.closed
    assert list(iterator) == []


def test_transaction_rolls_back_on_error(store: MemoryStateStore):
    store.put_state("keep", b"1")
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.put_state("keep", b"2")
            store.put_state("new", b"3")
            store.del_state("keep")
            raise RuntimeError("abort")
    assert store.get_state("keep") == b"1"
    assert store.get_state("new") is None
    with store.get_history_for_key("keep") as history:
        assert len(list(history)) == 1
    with store.get_history_for_key("new") as history:
        assert list(history) == []


def test_writes_in_one_transaction_share_a_tx_id(store: MemoryStateStore):
    with store.transaction() as tx:
        store.put_state("a", b"1")
        store.put_state("b", b"2")
    with store.get_history_for_key("a") as a, store.get_history_for_key("b") as b:
        assert next(a).tx_id == next(b).tx_id == tx.tx_id


def test_history_is_newest_first_with_deletions(store: MemoryStateStore):
    store.put_state("a", b"1")
    store.put_state("a", b"2")
    store.del_state("a")
    with store.get_history_for_key("a") as history:
        entries = list(history)
    assert [(e.is_delete, e.value) for e in entries] == [(True, None), (False, b"2"), (False, b"1")]
    assert len({e.tx_id for e in entries}) == 3


def test_deleting_missing_key_records_nothing(store: MemoryStateStore):
    store.del_state("ghost")
    with store.get_history_for_key("ghost") as history:
        assert list(history) == []


def test_rich_query_unsupported(store: MemoryStateStore):
    with pytest.raises(UnsupportedOperation):
        store.get_query_result('{"owner": "tom"}')

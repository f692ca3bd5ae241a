"""
Integration tests for the PostgreSQL store adapter.

These tests run against a real PostgreSQL instance and verify that:
1. The record lifecycle behaves as on the memory store
2. Paginated scans stream through named cursors in small batches
3. JSONB containment queries answer the predicate operations
4. Every write and delete lands in the key history

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import json
import os

import pytest

from statebook.dispatcher import Dispatcher
from statebook.records.codec import create_composite_key
from statebook.records.history import HistoryReader
from statebook.records.index import CATEGORY_INDEX
from statebook.store.postgres import PostgresStateStore

pytestmark = [
    pytest.mark.slow,
    pytest.mark.skipif(
        os.getenv("RUN_INTEGRATION_TESTS") != "1",
        reason="Set RUN_INTEGRATION_TESTS=1 to run integration tests against PostgreSQL",
    ),
]

RECORD_COUNT = 5


def _ok(result) -> bytes:
    assert result["status"] == 200, result["message"]
    return result["payload"]


@pytest.fixture
def pg_dispatcher(pg_store: PostgresStateStore) -> Dispatcher:
    dispatcher = Dispatcher(pg_store)
    for i in range(RECORD_COUNT):
        _ok(
            dispatcher.invoke(
                "initPicture",
                [f"p{i}", "blue" if i % 2 == 0 else "red", str(10 * (i + 1)), "tom" if i < 3 else "jerry"],
            )
        )
    return dispatcher


def test_lifecycle_matches_memory_semantics(pg_dispatcher: Dispatcher):
    summary = _ok(pg_dispatcher.invoke("transferPicturesBasedOnCategory", ["blue", "spike"]))
    assert summary == b"Transferred 3 blue pictures to spike"

    assert json.loads(_ok(pg_dispatcher.invoke("readPicture", ["p2"])))["owner"] == "spike"
    assert json.loads(_ok(pg_dispatcher.invoke("readPicture", ["p1"])))["owner"] == "tom"

    _ok(pg_dispatcher.invoke("delete", ["p0"]))
    assert pg_dispatcher.invoke("readPicture", ["p0"])["status"] == 404
    members = json.loads(_ok(pg_dispatcher.invoke("getPicturesByCategory", ["blue"])))
    assert [m["key"] for m in members] == ["p2", "p4"]

    duplicate = pg_dispatcher.invoke("initPicture", ["p1", "red", "1", "tom"])
    assert duplicate["status"] == 409


def test_composite_keys_sort_before_simple_keys(pg_store: PostgresStateStore, pg_dispatcher):
    with pg_store.transaction(), pg_store.get_state_by_range("", None) as results:
        keys = [kv.key for kv in results]
    index_keys = [k for k in keys if k.startswith("\x00")]
    assert keys[: len(index_keys)] == index_keys
    assert create_composite_key(CATEGORY_INDEX, ["blue", "p0"]) in index_keys
    assert keys[len(index_keys):] == [f"p{i}" for i in range(RECORD_COUNT)]


def test_pagination_walks_every_record(pg_dispatcher: Dispatcher):
    seen = []
    bookmark = ""
    while True:
        members = json.loads(
            _ok(pg_dispatcher.invoke("getPicturesByRangeWithPagination", ["", "", "2", bookmark]))
        )
        metadata = members[-1]["responseMetadata"]
        if metadata["bookmark"] == bookmark:
            assert metadata["recordsCount"] == 0
            break
        seen.extend(m["key"] for m in members[:-1])
        bookmark = metadata["bookmark"]
    assert seen == [f"p{i}" for i in range(RECORD_COUNT)]


def test_rich_queries(pg_dispatcher: Dispatcher):
    by_owner = json.loads(_ok(pg_dispatcher.invoke("queryPicturesByOwner", ["jerry"])))
    assert [m["key"] for m in by_owner] == ["p3", "p4"]

    red = json.loads(_ok(pg_dispatcher.invoke("queryPictures", ['{"category": "red"}'])))
    assert [m["key"] for m in red] == ["p1", "p3"]

    page = json.loads(
        _ok(pg_dispatcher.invoke("queryPicturesWithPagination", ['{"owner": "tom"}', "2", "p0"]))
    )
    assert [m["key"] for m in page[:-1]] == ["p1", "p2"]
    assert page[-1]["responseMetadata"] == {"recordsCount": 2, "bookmark": "p2"}


def test_history_records_writes_and_deletes(pg_dispatcher: Dispatcher):
    _ok(pg_dispatcher.invoke("transferPicture", ["p1", "spike"]))
    _ok(pg_dispatcher.invoke("delete", ["p1"]))

    entries = json.loads(_ok(pg_dispatcher.invoke("getHistoryForPicture", ["p1"])))

    assert [e["isDelete"] for e in entries] == [True, False, False]
    assert [e["value"]["owner"] for e in entries[1:]] == ["spike", "tom"]
    assert len({e["txId"] for e in entries}) == len(entries)


def test_history_reader_holds_no_transaction(pg_store: PostgresStateStore, pg_dispatcher):
    reader = HistoryReader(pg_store)
    entries = reader.history("p1")
    assert next(entries).is_delete is False

    # A write made while the reader is suspended commits on its own.
    _ok(pg_dispatcher.invoke("transferPicture", ["p2", "spike"]))
    entries.close()

    assert json.loads(pg_store.get_state("p2"))["owner"] == "spike"


def test_failed_create_leaves_no_partial_state(pg_store: PostgresStateStore, pg_dispatcher):
    result = pg_dispatcher.invoke("initPicture", ["p9", "blue", "-3", "tom"])
    assert result["status"] == 400
    assert pg_store.get_state("p9") is None
    assert pg_store.get_state(create_composite_key(CATEGORY_INDEX, ["blue", "p9"])) is None

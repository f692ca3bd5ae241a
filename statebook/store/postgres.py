"""
PostgreSQL adapter for the StateStore protocol.

World state lives in `world_state` (bytea keys, so ordering is bytewise UTF-8,
i.e. code-point order, and U+0000 separators are storable). Every write also
appends to `key_history`. Values that parse as JSON objects are mirrored into
a `doc` jsonb column; predicate queries are JSONB containment documents
evaluated against it, for example:

    {"docType": "picture", "owner": "tom"}

Scans use server-side named cursors and `fetchmany` batching. Inside
`transaction()` the cursor lives in that transaction; outside one it is a
`WITH HOLD` cursor, so a long-lived reader never pins a transaction that
later writes would join.
"""

from __future__ import annotations

import itertools
import json
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Generator, Iterator, List, Optional, Tuple

import psycopg
from psycopg.types.json import Jsonb

from statebook.config import get_settings
from statebook.domain.models import HistoryEntry, KeyValue
from statebook.errors import InvalidArgument, StoreFailure
from statebook.infrastructure.db_factory import apply_statement_timeout, get_sync_connection
from statebook.store.abstract import AbstractStateStore, ScopedIterator, TxContext
from statebook.utils.logging import get_logger

log = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS world_state (
    key        bytea PRIMARY KEY,
    value      bytea NOT NULL,
    doc        jsonb,
    tx_id      text NOT NULL,
    updated_at timestamptz NOT NULL
);
CREATE INDEX IF NOT EXISTS world_state_doc_idx ON world_state USING gin (doc jsonb_path_ops);
CREATE TABLE IF NOT EXISTS key_history (
    seq          bigserial PRIMARY KEY,
    key          bytea NOT NULL,
    tx_id        text NOT NULL,
    value        bytea,
    is_delete    boolean NOT NULL,
    committed_at timestamptz NOT NULL
);
CREATE INDEX IF NOT EXISTS key_history_key_idx ON key_history (key, seq);
"""

_cursor_ids = itertools.count(1)


def _as_doc(value: bytes) -> Optional[Jsonb]:
    """JSON-object values become queryable documents; anything else is opaque."""
    try:
        parsed = json.loads(value)
    except (UnicodeDecodeError, ValueError):
        return None
    return Jsonb(parsed) if isinstance(parsed, dict) else None


def _batched_fetch(cursor: psycopg.ServerCursor, batch_size: int) -> Iterator[List[Tuple[Any, ...]]]:
    """
    Yield batches from a cursor using fetchmany.
    """
    while True:
        try:
            batch = cursor.fetchmany(batch_size)
        except psycopg.Error as exc:
            raise StoreFailure("fetch", str(exc)) from exc
        if not batch:
            break
        yield batch


class PostgresStateStore(AbstractStateStore):
    """
    StateStore backed by a single psycopg connection in autocommit mode.
    """

    name: str = "postgres"
    supports_rich_query: bool = True

    def __init__(
        self,
        conn: psycopg.Connection,
        batch_size: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._conn = conn
        self._conn.autocommit = True
        self.batch_size = batch_size or settings.scan_batch_size
        self._tx: Optional[TxContext] = None
        timeout_ms = (
            settings.db_statement_timeout_ms
            if statement_timeout_ms is None
            else statement_timeout_ms
        )
        with self._conn.cursor() as cur:
            apply_statement_timeout(cur, timeout_ms)

    @classmethod
    def connect(cls, dsn: Optional[str] = None, **kwargs: Any) -> "PostgresStateStore":
        try:
            conn = get_sync_connection(dsn)
        except psycopg.Error as exc:
            raise StoreFailure("connect", str(exc)) from exc
        return cls(conn, **kwargs)

    def ensure_schema(self) -> None:
        try:
            with self._conn.transaction(), self._conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
        except psycopg.Error as exc:
            raise StoreFailure("ensure_schema", str(exc)) from exc

    @contextmanager
    def transaction(self) -> Generator[TxContext, None, None]:
        if self._tx is not None:
            yield self._tx
            return

        self._tx = TxContext(tx_id=uuid.uuid4().hex, timestamp=datetime.now(timezone.utc))
        try:
            with self._conn.transaction():
                yield self._tx
        except psycopg.Error as exc:
            raise StoreFailure("commit", str(exc)) from exc
        finally:
            self._tx = None

    def get_state(self, key: str) -> Optional[bytes]:
        try:
            with self._conn.cursor() as cur:
                cur.execute("SELECT value FROM world_state WHERE key = %s", (key.encode(),))
                row = cur.fetchone()
        except psycopg.Error as exc:
            raise StoreFailure("get_state", str(exc)) from exc
        return bytes(row[0]) if row else None

    def put_state(self, key: str, value: bytes) -> None:
        if not key:
            raise InvalidArgument("key must be a non-empty string")
        try:
            with self.transaction() as tx, self._conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO world_state (key, value, doc, tx_id, updated_at)
                    VALUES (%s, %s, %s, %s, %s)
                    ON CONFLICT (key) DO UPDATE
                    SET value = EXCLUDED.value, doc = EXCLUDED.doc,
                        tx_id = EXCLUDED.tx_id, updated_at = EXCLUDED.updated_at
                    """,
                    (key.encode(), value, _as_doc(value), tx.tx_id, tx.timestamp),
                )
                cur.execute(
                    """
                    INSERT INTO key_history (key, tx_id, value, is_delete, committed_at)
                    VALUES (%s, %s, %s, false, %s)
                    """,
                    (key.encode(), tx.tx_id, value, tx.timestamp),
                )
        except psycopg.Error as exc:
            raise StoreFailure("put_state", str(exc)) from exc

    def del_state(self, key: str) -> None:
        try:
            with self.transaction() as tx, self._conn.cursor() as cur:
                cur.execute("DELETE FROM world_state WHERE key = %s", (key.encode(),))
                if cur.rowcount:
                    cur.execute(
                        """
                        INSERT INTO key_history (key, tx_id, value, is_delete, committed_at)
                        VALUES (%s, %s, NULL, true, %s)
                        """,
                        (key.encode(), tx.tx_id, tx.timestamp),
                    )
        except psycopg.Error as exc:
            raise StoreFailure("del_state", str(exc)) from exc

    def _scan(self, operation: str, sql: str, params: Tuple[Any, ...]) -> ScopedIterator:
        cursor = self._conn.cursor(
            name=f"statebook_{operation}_{next(_cursor_ids)}", withhold=self._tx is None
        )
        try:
            cursor.execute(sql, params)
        except psycopg.Error as exc:
            cursor.close()
            raise StoreFailure(operation, str(exc)) from exc

        def _rows() -> Iterator[Tuple[Any, ...]]:
            for batch in _batched_fetch(cursor, self.batch_size):
                yield from batch

        return ScopedIterator(_rows(), on_close=cursor.close)

    def get_state_by_range(
        self, start_key: str, end_key: Optional[str], limit: Optional[int] = None
    ) -> ScopedIterator[KeyValue]:
        clauses = ["key >= %s"]
        params: List[Any] = [start_key.encode()]
        if end_key is not None:
            clauses.append("key < %s")
            params.append(end_key.encode())
        sql = f"SELECT key, value FROM world_state WHERE {' AND '.join(clauses)} ORDER BY key"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        rows = self._scan("range", sql, tuple(params))
        return ScopedIterator(
            (KeyValue(key=bytes(k).decode("utf-8"), value=bytes(v)) for k, v in rows),
            on_close=rows.close,
        )

    def get_query_result(
        self, expression: str, start_after: str = "", limit: Optional[int] = None
    ) -> ScopedIterator[KeyValue]:
        sql = "SELECT key, value FROM world_state WHERE doc @> %s::jsonb AND key > %s ORDER BY key"
        params: List[Any] = [expression, start_after.encode()]
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        log.debug("rich query", extra={"expression": expression, "start_after": start_after})
        rows = self._scan("query", sql, tuple(params))
        return ScopedIterator(
            (KeyValue(key=bytes(k).decode("utf-8"), value=bytes(v)) for k, v in rows),
            on_close=rows.close,
        )

    def get_history_for_key(self, key: str) -> ScopedIterator[HistoryEntry]:
        rows = self._scan(
            "history",
            """
            SELECT tx_id, committed_at, is_delete, value
            FROM key_history WHERE key = %s ORDER BY seq DESC
            """,
            (key.encode(),),
        )
        return ScopedIterator(
            (
                HistoryEntry(
                    tx_id=tx_id,
                    timestamp=committed_at,
                    is_delete=is_delete,
                    value=None if value is None else bytes(value),
                )
                for tx_id, committed_at, is_delete, value in rows
            ),
            on_close=rows.close,
        )

    def close(self) -> None:
        self._conn.close()


__all__ = ["PostgresStateStore", "SCHEMA_SQL"]

"""
Pytest configuration for statebook.

Provides fixtures for:
- In-memory stores and dispatchers for unit tests
- A rich-query-capable memory store stand-in
- PostgreSQL connection management for integration tests
"""

from __future__ import annotations

import json
import os
from typing import Generator, Optional

import psycopg
import pytest

from statebook.config import Settings, get_settings
from statebook.dispatcher import Dispatcher
from statebook.domain.models import KeyValue
from statebook.store.abstract import ScopedIterator
from statebook.store.memory import MemoryStateStore
from statebook.store.postgres import PostgresStateStore


class ContainmentMemoryStore(MemoryStateStore):
    """
    Memory store that answers predicate queries.

    Expressions are JSON objects; a record matches when every top-level field
    in the expression equals the record's field.
    """

    name = "memory-containment"
    supports_rich_query = True

    def get_query_result(
        self, expression: str, start_after: str = "", limit: Optional[int] = None
    ) -> ScopedIterator[KeyValue]:
        selector = json.loads(expression)
        matches = []
        for key in self._keys:
            if key <= start_after:
                continue
            try:
                doc = json.loads(self._values[key])
            except ValueError:
                continue
            if isinstance(doc, dict) and all(doc.get(k) == v for k, v in selector.items()):
                matches.append(KeyValue(key=key, value=self._values[key]))
        if limit is not None:
            matches = matches[:limit]
        return self._scoped(matches)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def rich_store() -> ContainmentMemoryStore:
    return ContainmentMemoryStore()


@pytest.fixture
def dispatcher(store: MemoryStateStore) -> Dispatcher:
    return Dispatcher(store)


@pytest.fixture
def seeded_dispatcher(dispatcher: Dispatcher) -> Dispatcher:
    """
    Dispatcher over three pictures: p1 (blue), p2 (red), p3 (blue), all owned by tom.
    """
    for args in (
        ["p1", "blue", "35", "tom"],
        ["p2", "red", "50", "tom"],
        ["p3", "blue", "70", "tom"],
    ):
        result = dispatcher.invoke("initPicture", args)
        assert result["status"] == 200, result["message"]
    return dispatcher


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "statebook"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def pg_store(test_dsn: str, db_connection_available: bool) -> Generator[PostgresStateStore, None, None]:
    """
    PostgreSQL store over freshly truncated tables.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    store = PostgresStateStore(psycopg.connect(test_dsn), batch_size=2)
    store.ensure_schema()
    with store._conn.cursor() as cur:
        cur.execute("TRUNCATE TABLE world_state, key_history RESTART IDENTITY;")
    try:
        yield store
    finally:
        store.close()

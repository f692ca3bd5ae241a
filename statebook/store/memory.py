"""
In-process ordered store for local runs and the unit test suite.

Keeps keys in a sorted list (bisect) next to a value map and a per-key
version log. Range iterators work on a snapshot taken when they are opened.
There is no predicate-query facility.
"""

from __future__ import annotations

import bisect
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Generator, List, Optional

from statebook.domain.models import HistoryEntry, KeyValue
from statebook.errors import InvalidArgument, UnsupportedOperation
from statebook.store.abstract import AbstractStateStore, ScopedIterator, TxContext
from statebook.utils.logging import get_logger

log = get_logger(__name__)


class MemoryStateStore(AbstractStateStore):
    """
    Ordered in-memory key-value store with transactional rollback.
    """

    name: str = "memory"
    supports_rich_query: bool = False

    def __init__(self) -> None:
        self._keys: List[str] = []
        self._values: Dict[str, bytes] = {}
        self._history: Dict[str, List[HistoryEntry]] = {}
        self._tx: Optional[TxContext] = None
        self.open_iterators = 0

    @contextmanager
    def transaction(self) -> Generator[TxContext, None, None]:
        if self._tx is not None:
            yield self._tx
            return

        self._tx = TxContext(tx_id=uuid.uuid4().hex, timestamp=datetime.now(timezone.utc))
        keys = list(self._keys)
        values = dict(self._values)
        history_lengths = {key: len(entries) for key, entries in self._history.items()}
        try:
            yield self._tx
        except Exception:
            log.debug("rolling back transaction", extra={"tx_id": self._tx.tx_id})
            self._keys = keys
            self._values = values
            self._history = {
                key: entries[: history_lengths[key]]
                for key, entries in self._history.items()
                if key in history_lengths
            }
            raise
        finally:
            self._tx = None

    def get_state(self, key: str) -> Optional[bytes]:
        return self._values.get(key)

    def put_state(self, key: str, value: bytes) -> None:
        if not key:
            raise InvalidArgument("key must be a non-empty string")
        with self.transaction() as tx:
            if key not in self._values:
                bisect.insort(self._keys, key)
            self._values[key] = value
            self._history.setdefault(key, []).append(
                HistoryEntry(tx_id=tx.tx_id, timestamp=tx.timestamp, value=value)
            )

    def del_state(self, key: str) -> None:
        with self.transaction() as tx:
            if key not in self._values:
                return
            del self._values[key]
            self._keys.pop(bisect.bisect_left(self._keys, key))
            self._history.setdefault(key, []).append(
                HistoryEntry(tx_id=tx.tx_id, timestamp=tx.timestamp, is_delete=True)
            )

    def _scoped(self, items: List) -> ScopedIterator:
        self.open_iterators += 1

        def _release() -> None:
            self.open_iterators -= 1

        return ScopedIterator(items, on_close=_release)

    def get_state_by_range(
        self, start_key: str, end_key: Optional[str], limit: Optional[int] = None
    ) -> ScopedIterator[KeyValue]:
        lo = bisect.bisect_left(self._keys, start_key)
        hi = len(self._keys) if end_key is None else bisect.bisect_left(self._keys, end_key)
        keys = self._keys[lo:hi] if hi > lo else []
        if limit is not None:
            keys = keys[:limit]
        return self._scoped([KeyValue(key=key, value=self._values[key]) for key in keys])

    def get_query_result(
        self, expression: str, start_after: str = "", limit: Optional[int] = None
    ) -> ScopedIterator[KeyValue]:
        raise UnsupportedOperation(
            f"Rich queries are not supported by the '{self.name}' store"
        )

    def get_history_for_key(self, key: str) -> ScopedIterator[HistoryEntry]:
        return self._scoped(list(reversed(self._history.get(key, []))))


__all__ = ["MemoryStateStore"]

"""
History Reader: past versions of a key, as the store recorded them.
"""

from __future__ import annotations

from typing import Iterator, List

from statebook.domain.models import HistoryEntry
from statebook.records.repository import validate_record_id
from statebook.store.abstract import StateStore


class HistoryReader:
    def __init__(self, store: StateStore) -> None:
        self._store = store

    def history(self, record_id: str) -> Iterator[HistoryEntry]:
        """
        Lazily yield every version of `record_id` in store order (newest first).

        The store iterator stays open until the generator is exhausted or
        closed. No store transaction is held across yields, so writes made
        while the generator is suspended keep their own transactions.
        Deletions come through with `is_delete=True` and no value.
        """
        validate_record_id(record_id)
        with self._store.get_history_for_key(record_id) as entries:
            yield from entries

    def history_list(self, record_id: str) -> List[HistoryEntry]:
        return list(self.history(record_id))


__all__ = ["HistoryReader"]

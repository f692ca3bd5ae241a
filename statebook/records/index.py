"""
Secondary Index Manager for the `category~id` index.

Index entries are key-only markers: the key is the composite key
(category, id) and the value a single sentinel byte. An entry exists exactly
when a record with that id and category exists, so every create and delete
goes through this manager.

`transfer_by_category` drives writes off a prefix scan. The store re-checks
scanned ranges when the transaction commits (PostgreSQL: the scan and the
writes share one transaction), which is what makes a range scan safe to base
updates on. Predicate queries carry no such guarantee and are never used here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from statebook.domain.models import KeyValue, Record
from statebook.errors import InvalidArgument, StatebookError, StoreFailure
from statebook.records.codec import create_composite_key, prefix_range, split_composite_key
from statebook.records.repository import RecordRepository, validate_owner
from statebook.store.abstract import StateStore
from statebook.utils.logging import get_logger

log = get_logger(__name__)

CATEGORY_INDEX = "category~id"
INDEX_SENTINEL = b"\x00"


@dataclass(frozen=True)
class TransferOutcome:
    """Result of a batch transfer: how many records moved, and what stopped it."""

    category: str
    new_owner: str
    transferred: int
    error: Optional[StatebookError] = None
    rolled_back: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.error is not None and self.rolled_back:
            return f"Transfer failed, nothing committed: {self.error}"
        if self.error is not None:
            return f"Transfer failed: {self.error}"
        return f"Transferred {self.transferred} {self.category} pictures to {self.new_owner}"


class SecondaryIndexManager:
    """
    Keeps the `category~id` index in step with the primary records.
    """

    def __init__(self, store: StateStore, repository: Optional[RecordRepository] = None) -> None:
        self._store = store
        self.records = repository or RecordRepository(store)

    @staticmethod
    def index_key(category: str, record_id: str) -> str:
        return create_composite_key(CATEGORY_INDEX, [category, record_id])

    def on_create(self, record: Record) -> None:
        self._store.put_state(self.index_key(record.category, record.id), INDEX_SENTINEL)

    def create_record(self, record: Record) -> None:
        """Create the record and its index entry in one store transaction."""
        # Validate the index key before the primary write.
        self.index_key(record.category, record.id)
        with self._store.transaction():
            self.records.create(record)
            self.on_create(record)
        log.info(
            "record created",
            extra={"record_id": record.id, "category": record.category, "owner": record.owner},
        )

    def on_delete(self, record_id: str) -> Record:
        """
        Delete a record and its index entry.

        The record is read first; if it is missing or undecodable nothing is
        touched.
        """
        with self._store.transaction():
            record = self.records.read(record_id)
            self.records.delete(record_id)
            self._store.del_state(self.index_key(record.category, record.id))
        log.info("record deleted", extra={"record_id": record_id, "category": record.category})
        return record

    def ids_for_category(self, category: str) -> List[str]:
        start, end = prefix_range(CATEGORY_INDEX, [category.lower()])
        with self._store.transaction(), self._store.get_state_by_range(start, end) as entries:
            return [split_composite_key(entry.key)[1][1] for entry in entries]

    def records_for_category(self, category: str) -> List[KeyValue]:
        """Primary records of `category`, looked up through the index, in index order."""
        with self._store.transaction():
            return [
                KeyValue(key=record_id, value=self.records.read_raw(record_id))
                for record_id in self.ids_for_category(category)
            ]

    def transfer_by_category(self, category: str, new_owner: str) -> TransferOutcome:
        """
        Set `owner` on every record of `category`, in index order.

        Stops at the first failing transfer. Transfers made before a record
        level failure (missing or undecodable record) are kept; a store failure
        rolls the whole batch back. The outcome reports which happened.
        """
        if not category:
            raise InvalidArgument("category must be a non-empty string")
        validate_owner(new_owner)
        category = category.lower()
        new_owner = new_owner.lower()
        log.info("start transfer by category", extra={"category": category, "owner": new_owner})

        transferred = 0
        start, end = prefix_range(CATEGORY_INDEX, [category])
        try:
            with self._store.transaction(), self._store.get_state_by_range(start, end) as entries:
                for entry in entries:
                    index_name, parts = split_composite_key(entry.key)
                    record_id = parts[1]
                    log.debug(
                        "found record from index",
                        extra={"index": index_name, "category": parts[0], "record_id": record_id},
                    )
                    try:
                        self.records.transfer(record_id, new_owner)
                    except StoreFailure:
                        raise
                    except StatebookError as exc:
                        log.warning(
                            "transfer aborted",
                            extra={"record_id": record_id, "transferred": transferred},
                        )
                        return TransferOutcome(category, new_owner, transferred, exc)
                    transferred += 1
        except StoreFailure as exc:
            # The store transaction is gone, so nothing of this batch was kept.
            log.warning("transfer rolled back", extra={"transferred": transferred})
            return TransferOutcome(category, new_owner, transferred, exc, rolled_back=True)

        outcome = TransferOutcome(category, new_owner, transferred)
        log.info(outcome.message)
        return outcome


__all__ = [
    "CATEGORY_INDEX",
    "INDEX_SENTINEL",
    "SecondaryIndexManager",
    "TransferOutcome",
]

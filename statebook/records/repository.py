"""
Record Store: CRUD over primary records keyed by id.

Owns the JSON encoding of `Record`. Index maintenance is not done here; see
`statebook.records.index.SecondaryIndexManager`.
"""

from __future__ import annotations

from pydantic import ValidationError

from statebook.domain.models import Record
from statebook.errors import AlreadyExists, InvalidArgument, NotFound, SerializationError
from statebook.records.codec import is_composite_key
from statebook.store.abstract import StateStore
from statebook.utils.logging import get_logger

log = get_logger(__name__)


def _require_text(value: str, name: str) -> str:
    if not value:
        raise InvalidArgument(f"{name} must be a non-empty string")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidArgument(f"{name} {value!r} is not valid text") from exc
    return value


def validate_record_id(record_id: str) -> str:
    _require_text(record_id, "record id")
    if is_composite_key(record_id):
        raise InvalidArgument("record id must not start with U+0000")
    return record_id


def validate_owner(owner: str) -> str:
    return _require_text(owner, "new owner")


class RecordRepository:
    """
    Primary-record access on top of a StateStore.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store

    def exists(self, record_id: str) -> bool:
        return self._store.get_state(validate_record_id(record_id)) is not None

    def create(self, record: Record) -> None:
        """Persist a new record; fails if the id is taken."""
        validate_record_id(record.id)
        if self._store.get_state(record.id) is not None:
            log.info("record already exists", extra={"record_id": record.id})
            raise AlreadyExists(record.id)
        self._store.put_state(record.id, record.to_json())

    def read_raw(self, record_id: str) -> bytes:
        value = self._store.get_state(validate_record_id(record_id))
        if value is None:
            raise NotFound(record_id)
        return value

    def read(self, record_id: str) -> Record:
        value = self.read_raw(record_id)
        try:
            return Record.from_json(value)
        except ValidationError as exc:
            raise SerializationError(record_id, str(exc)) from exc

    def update(self, record: Record) -> None:
        """Overwrite by id without an existence check."""
        self._store.put_state(validate_record_id(record.id), record.to_json())

    def delete(self, record_id: str) -> None:
        """Remove the primary entry only."""
        self.read_raw(record_id)
        self._store.del_state(record_id)

    def transfer(self, record_id: str, new_owner: str) -> Record:
        """Read-modify-write of `owner`."""
        validate_owner(new_owner)
        record = self.read(record_id)
        try:
            record = record.with_owner(new_owner)
        except ValidationError as exc:
            raise InvalidArgument(str(exc)) from exc
        self.update(record)
        log.debug("record transferred", extra={"record_id": record_id, "owner": record.owner})
        return record


__all__ = ["RecordRepository", "validate_owner", "validate_record_id"]

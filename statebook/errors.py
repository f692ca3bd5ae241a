"""
Error types for statebook operations.

Every failure an operation can surface is one of these. The dispatcher maps
each class to a result status; nothing below the dispatcher catches them.
"""

from __future__ import annotations

from typing import Optional


class StatebookError(Exception):
    """Base error for all statebook failures."""

    status: int = 500


class InvalidArgument(StatebookError):
    """Wrong argument count, empty required value, bad number or page size."""

    status = 400


class AlreadyExists(StatebookError):
    """Raised when creating a record whose id is already present."""

    status = 409

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"This picture already exists: {record_id}")


class NotFound(StatebookError):
    """Raised when reading, transferring or deleting a missing record."""

    status = 404

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Picture does not exist: {record_id}")


class SerializationError(StatebookError):
    """Raised when a stored value cannot be decoded or emitted."""

    def __init__(self, key: str, detail: str) -> None:
        self.key = key
        self.detail = detail
        super().__init__(f"Failed to decode value of {key!r}: {detail}")


class UnsupportedOperation(StatebookError):
    """Raised when the backing store lacks a capability (e.g. rich queries)."""

    status = 501


class StoreFailure(StatebookError):
    """Raised when a call into the backing store fails."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store failure during {operation}: {detail}")


class TransferAborted(StatebookError):
    """
    Raised when a batch transfer stops on a failing record.

    Records transferred before the failure keep their new owner unless
    `rolled_back` is set, in which case the store discarded the whole batch.
    """

    def __init__(
        self, transferred: int, cause: Optional[StatebookError], rolled_back: bool = False
    ) -> None:
        self.transferred = transferred
        self.cause = cause
        self.rolled_back = rolled_back
        if cause is not None:
            self.status = cause.status
        kept = ", none committed" if rolled_back else ""
        super().__init__(f"Transfer failed after {transferred} transfers{kept}: {cause}")


__all__ = [
    "StatebookError",
    "InvalidArgument",
    "AlreadyExists",
    "NotFound",
    "SerializationError",
    "UnsupportedOperation",
    "StoreFailure",
    "TransferAborted",
]

"""
Store interfaces for statebook.

statebook does not own its key-value engine. Concrete adapters (in-memory,
PostgreSQL) implement the StateStore protocol below, and every component above
this layer talks to the store only through it.

Iterators handed out by a store are scoped resources: use them in a `with`
block so the underlying cursor is released on every exit path.
"""

from __future__ import annotations

import abc
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from types import TracebackType
from typing import (
    Callable,
    Generic,
    Iterable,
    Iterator,
    Optional,
    Protocol,
    Type,
    TypeVar,
    runtime_checkable,
)

from statebook.domain.models import HistoryEntry, KeyValue

T = TypeVar("T")


@dataclass(frozen=True)
class TxContext:
    """Identity of the store transaction a write belongs to."""

    tx_id: str
    timestamp: datetime


class ScopedIterator(Generic[T]):
    """
    Forward-only iterator with an explicit close.

    Once closed (or exhausted) it yields nothing more; `close` is idempotent.
    """

    def __init__(self, source: Iterable[T], on_close: Optional[Callable[[], None]] = None) -> None:
        self._source: Iterator[T] = iter(source)
        self._on_close = on_close
        self._closed = False

    def __iter__(self) -> "ScopedIterator[T]":
        return self

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        return next(self._source)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> "ScopedIterator[T]":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()


@runtime_checkable
class StateStore(Protocol):
    """
    Operations statebook consumes from an ordered key-value store.

    Attributes
    ----------
    name : str
        Short machine-friendly backend identifier.
    supports_rich_query : bool
        Whether `get_query_result` is available.
    """

    name: str
    supports_rich_query: bool

    def transaction(self) -> AbstractContextManager[TxContext]:
        """Group writes into one atomic unit; joins an already open one."""
        ...

    def get_state(self, key: str) -> Optional[bytes]:
        ...

    def put_state(self, key: str, value: bytes) -> None:
        ...

    def del_state(self, key: str) -> None:
        ...

    def get_state_by_range(
        self, start_key: str, end_key: Optional[str], limit: Optional[int] = None
    ) -> ScopedIterator[KeyValue]:
        """
        Iterate over `[start_key, end_key)` in key order.

        `end_key=None` means unbounded; `limit` caps the number of results.
        """
        ...

    def get_query_result(
        self, expression: str, start_after: str = "", limit: Optional[int] = None
    ) -> ScopedIterator[KeyValue]:
        """
        Evaluate a store-native predicate expression, in key order.

        Raises UnsupportedOperation when the store has no rich-query facility.
        """
        ...

    def get_history_for_key(self, key: str) -> ScopedIterator[HistoryEntry]:
        """
        Every past version of `key`, newest first, deletions included.

        May be opened outside `transaction()`; the iterator then joins no
        transaction while it stays open.
        """
        ...

    def close(self) -> None:
        ...


class AbstractStateStore(abc.ABC):
    """
    ABC helper for class-based store adapters.

    Subclasses set `name` and `supports_rich_query` and implement the
    abstract operations.
    """

    name: str
    supports_rich_query: bool = False

    @abc.abstractmethod
    def transaction(self) -> AbstractContextManager[TxContext]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def get_state(self, key: str) -> Optional[bytes]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def put_state(self, key: str, value: bytes) -> None:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def del_state(self, key: str) -> None:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def get_state_by_range(
        self, start_key: str, end_key: Optional[str], limit: Optional[int] = None
    ) -> ScopedIterator[KeyValue]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def get_query_result(
        self, expression: str, start_after: str = "", limit: Optional[int] = None
    ) -> ScopedIterator[KeyValue]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def get_history_for_key(self, key: str) -> ScopedIterator[HistoryEntry]:  # pragma: no cover
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources. Default: nothing to release."""

    def __enter__(self) -> "AbstractStateStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    "TxContext",
    "ScopedIterator",
    "StateStore",
    "AbstractStateStore",
]

"""
Dispatcher: resolves an operation name to its handler and runs it.

Usage (example from CLI):
    from statebook.dispatcher import Dispatcher
    from statebook.store import MemoryStateStore

    dispatcher = Dispatcher(MemoryStateStore())
    dispatcher.invoke("initPicture", ["p1", "blue", "35", "tom"])
    result = dispatcher.invoke("readPicture", ["p1"])
    print(result["payload"])

Every handler takes its arguments as strings, with a fixed arity, and returns
the response payload as bytes. Failures are `StatebookError`s; `invoke` turns
them into an error `InvokeResult` carrying the error's status and message.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Sequence, TypedDict

from pydantic import ValidationError

from statebook.domain.models import Record
from statebook.errors import InvalidArgument, StatebookError, TransferAborted
from statebook.records.history import HistoryReader
from statebook.records.index import SecondaryIndexManager
from statebook.records.queries import PredicateQueryEngine, RangeQueryEngine, parse_decimal
from statebook.records.repository import RecordRepository
from statebook.records.serializer import serialize_history, serialize_kv, serialize_page
from statebook.store.abstract import StateStore
from statebook.utils.logging import get_logger
from statebook.utils.profiler import profile_block

log = get_logger(__name__)

STATUS_OK = 200


class Operation(str, Enum):
    CREATE = "initPicture"
    READ = "readPicture"
    TRANSFER = "transferPicture"
    DELETE = "delete"
    TRANSFER_BY_CATEGORY = "transferPicturesBasedOnCategory"
    RANGE = "getPicturesByRange"
    RANGE_PAGINATED = "getPicturesByRangeWithPagination"
    BY_CATEGORY = "getPicturesByCategory"
    QUERY_BY_OWNER = "queryPicturesByOwner"
    QUERY = "queryPictures"
    QUERY_PAGINATED = "queryPicturesWithPagination"
    HISTORY = "getHistoryForPicture"


class InvokeResult(TypedDict):
    """
    Outcome of one invocation.

    `status` is 200 on success; otherwise the failing error's status code.
    """

    status: int
    payload: bytes
    message: str


class _Handler(NamedTuple):
    arity: int
    func: Callable[[List[str]], bytes]
    # Argument positions that may be empty strings (range bounds, bookmarks).
    optional: tuple = ()


def available_operations() -> List[str]:
    """List operation names."""
    return [op.value for op in Operation]


def _require_non_empty(args: Sequence[str], optional: tuple) -> None:
    for position, value in enumerate(args):
        if position not in optional and not value:
            raise InvalidArgument(f"argument {position + 1} must be a non-empty string")


def _parse_quantity(value: str) -> int:
    quantity = parse_decimal(value, "quantity")
    if quantity < 0:
        raise InvalidArgument(f"quantity must be non-negative, got {quantity}")
    return quantity


class Dispatcher:
    """
    Binds every Operation to one handler over a single StateStore.
    """

    def __init__(self, store: StateStore) -> None:
        self.store = store
        self.records = RecordRepository(store)
        self.index = SecondaryIndexManager(store, self.records)
        self.ranges = RangeQueryEngine(store)
        self.predicates = PredicateQueryEngine(store)
        self.history = HistoryReader(store)
        self._handlers: Dict[Operation, _Handler] = {
            Operation.CREATE: _Handler(4, self._create),
            Operation.READ: _Handler(1, self._read),
            Operation.TRANSFER: _Handler(2, self._transfer),
            Operation.DELETE: _Handler(1, self._delete),
            Operation.TRANSFER_BY_CATEGORY: _Handler(2, self._transfer_by_category),
            Operation.RANGE: _Handler(2, self._range, optional=(0, 1)),
            Operation.RANGE_PAGINATED: _Handler(4, self._range_paginated, optional=(0, 1, 3)),
            Operation.BY_CATEGORY: _Handler(1, self._by_category),
            Operation.QUERY_BY_OWNER: _Handler(1, self._query_by_owner),
            Operation.QUERY: _Handler(1, self._query),
            Operation.QUERY_PAGINATED: _Handler(3, self._query_paginated, optional=(2,)),
            Operation.HISTORY: _Handler(1, self._history),
        }

    def resolve(self, function: str) -> _Handler:
        try:
            operation = Operation(function)
        except ValueError as exc:
            raise InvalidArgument(f"Received unknown function invocation: {function!r}") from exc
        return self._handlers[operation]

    def call(self, function: str, args: Sequence[str]) -> bytes:
        """Run one operation, raising on failure."""
        handler = self.resolve(function)
        if len(args) != handler.arity:
            raise InvalidArgument(
                f"Incorrect number of arguments for {function}. Expecting {handler.arity}"
            )
        _require_non_empty(args, handler.optional)
        return handler.func(list(args))

    def invoke(self, function: str, args: Sequence[str]) -> InvokeResult:
        """Run one operation and report the outcome as an InvokeResult."""
        with profile_block(function) as stats:
            try:
                payload = self.call(function, args)
            except StatebookError as exc:
                result = InvokeResult(status=exc.status, payload=b"", message=str(exc))
            else:
                result = InvokeResult(status=STATUS_OK, payload=payload, message="")
        fields = {"function": function, "status": result["status"], **stats.as_log_fields()}
        if result["status"] == STATUS_OK:
            log.info("invoke succeeded", extra=fields)
        else:
            log.warning("invoke failed: %s", result["message"], extra=fields)
        return result

    # Handlers

    def _create(self, args: List[str]) -> bytes:
        record_id, category, quantity, owner = args
        try:
            record = Record(
                id=record_id, category=category, quantity=_parse_quantity(quantity), owner=owner
            )
        except ValidationError as exc:
            raise InvalidArgument(str(exc)) from exc
        self.index.create_record(record)
        return b""

    def _read(self, args: List[str]) -> bytes:
        return self.records.read_raw(args[0])

    def _transfer(self, args: List[str]) -> bytes:
        record_id, new_owner = args
        with self.store.transaction():
            self.records.transfer(record_id, new_owner)
        return b""

    def _delete(self, args: List[str]) -> bytes:
        self.index.on_delete(args[0])
        return b""

    def _transfer_by_category(self, args: List[str]) -> bytes:
        category, new_owner = args
        outcome = self.index.transfer_by_category(category, new_owner)
        if not outcome.ok:
            raise TransferAborted(outcome.transferred, outcome.error, outcome.rolled_back)
        return outcome.message.encode("utf-8")

    def _range(self, args: List[str]) -> bytes:
        start_key, end_key = args
        return serialize_kv(self.ranges.range_scan(start_key, end_key))

    def _range_paginated(self, args: List[str]) -> bytes:
        start_key, end_key, page_size, bookmark = args
        return serialize_page(
            self.ranges.range_scan_paginated(start_key, end_key, page_size, bookmark)
        )

    def _by_category(self, args: List[str]) -> bytes:
        return serialize_kv(self.index.records_for_category(args[0]))

    def _query_by_owner(self, args: List[str]) -> bytes:
        return serialize_kv(self.predicates.query_by_owner(args[0]))

    def _query(self, args: List[str]) -> bytes:
        return serialize_kv(self.predicates.query(args[0]))

    def _query_paginated(self, args: List[str]) -> bytes:
        expression, page_size, bookmark = args
        return serialize_page(self.predicates.query_paginated(expression, page_size, bookmark))

    def _history(self, args: List[str]) -> bytes:
        record_id = args[0]
        return serialize_history(self.history.history(record_id), key=record_id)


__all__ = [
    "Dispatcher",
    "InvokeResult",
    "Operation",
    "available_operations",
]

"""
Range/prefix and predicate query engines.

Both return materialized lists (or a `QueryPage`) and close the store
iterator before returning, whatever happens while consuming it.

Pagination contract shared by every paginated call:

- an empty bookmark asks for the first page;
- a page holds at most `page_size` results, in key order;
- the returned bookmark is the key of the page's last result, and the next
  page resumes strictly after it;
- a page with no results returns the bookmark it was given, so a caller is
  done once the bookmark stops advancing.
"""

from __future__ import annotations

import json
import re
from typing import List, Optional, Sequence, Union

from statebook.domain.models import DOC_TYPE, KeyValue, QueryPage, QueryResponseMetadata
from statebook.errors import InvalidArgument, UnsupportedOperation
from statebook.records.codec import SEPARATOR, is_composite_key, prefix_range
from statebook.store.abstract import ScopedIterator, StateStore
from statebook.utils.logging import get_logger

log = get_logger(__name__)

MAX_PAGE_SIZE = 2**31 - 1
# Smallest string that sorts after every composite key: simple keys never
# start with U+0000.
SIMPLE_KEY_FLOOR = "\x01"
_DECIMAL = re.compile(r"[+-]?[0-9]+")


def parse_decimal(value: str, name: str) -> int:
    """Parse a base-10 integer argument: optional sign, ASCII digits, nothing else."""
    if not _DECIMAL.fullmatch(value):
        raise InvalidArgument(f"{name} must be a numeric string, got {value!r}")
    return int(value)


def parse_page_size(value: Union[str, int]) -> int:
    """Parse a page size argument; must be a positive 32-bit integer."""
    if isinstance(value, bool):
        raise InvalidArgument(f"page size must be an integer, got {value!r}")
    if isinstance(value, str):
        value = parse_decimal(value, "page size")
    if not 0 < value <= MAX_PAGE_SIZE:
        raise InvalidArgument(f"page size must be between 1 and {MAX_PAGE_SIZE}, got {value}")
    return value


def _after(key: str) -> str:
    """Smallest key strictly greater than `key`."""
    return key + SEPARATOR


def _collect_page(
    iterator: ScopedIterator[KeyValue], page_size: int, bookmark: str
) -> QueryPage:
    with iterator as results:
        page: List[KeyValue] = []
        for item in results:
            page.append(item)
            if len(page) >= page_size:
                break
    next_bookmark = page[-1].key if page else bookmark
    return QueryPage(
        results=page,
        metadata=QueryResponseMetadata(fetched_records_count=len(page), bookmark=next_bookmark),
    )


class RangeQueryEngine:
    """
    Key-ordered scans over simple keys, and prefix scans over composite keys.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store

    @staticmethod
    def _simple_bounds(start_key: str, end_key: str) -> tuple[str, Optional[str]]:
        for name, key in (("start key", start_key), ("end key", end_key)):
            if key and is_composite_key(key):
                raise InvalidArgument(f"{name} must not start with U+0000")
        return start_key or SIMPLE_KEY_FLOOR, end_key or None

    def range_scan(self, start_key: str, end_key: str) -> List[KeyValue]:
        """`[start_key, end_key)`; an empty bound is open."""
        start, end = self._simple_bounds(start_key, end_key)
        with self._store.transaction(), self._store.get_state_by_range(start, end) as results:
            return list(results)

    def prefix_scan(self, index_name: str, partial_parts: Sequence[str]) -> List[KeyValue]:
        start, end = prefix_range(index_name, partial_parts)
        with self._store.transaction(), self._store.get_state_by_range(start, end) as results:
            return list(results)

    def _page(self, start: str, end: Optional[str], page_size: int, bookmark: str) -> QueryPage:
        if bookmark and _after(bookmark) > start:
            start = _after(bookmark)
        with self._store.transaction():
            return _collect_page(
                self._store.get_state_by_range(start, end, limit=page_size), page_size, bookmark
            )

    def range_scan_paginated(
        self, start_key: str, end_key: str, page_size: Union[str, int], bookmark: str = ""
    ) -> QueryPage:
        size = parse_page_size(page_size)
        start, end = self._simple_bounds(start_key, end_key)
        return self._page(start, end, size, bookmark)

    def prefix_scan_paginated(
        self,
        index_name: str,
        partial_parts: Sequence[str],
        page_size: Union[str, int],
        bookmark: str = "",
    ) -> QueryPage:
        size = parse_page_size(page_size)
        start, end = prefix_range(index_name, partial_parts)
        return self._page(start, end, size, bookmark)


class PredicateQueryEngine:
    """
    Pass-through of store-native predicate expressions.

    Results are a point-in-time view and are not re-validated at commit, so
    they must not drive writes.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store

    def _require_rich_query(self) -> None:
        if not self._store.supports_rich_query:
            raise UnsupportedOperation(
                f"Rich queries are not supported by the '{self._store.name}' store"
            )

    def query(self, expression: str) -> List[KeyValue]:
        if not expression:
            raise InvalidArgument("query expression must be a non-empty string")
        self._require_rich_query()
        log.debug("predicate query", extra={"expression": expression})
        with self._store.transaction(), self._store.get_query_result(expression) as results:
            return list(results)

    def query_paginated(
        self, expression: str, page_size: Union[str, int], bookmark: str = ""
    ) -> QueryPage:
        if not expression:
            raise InvalidArgument("query expression must be a non-empty string")
        size = parse_page_size(page_size)
        self._require_rich_query()
        with self._store.transaction():
            return _collect_page(
                self._store.get_query_result(expression, start_after=bookmark, limit=size),
                size,
                bookmark,
            )

    @staticmethod
    def owner_expression(owner: str) -> str:
        """Containment document selecting every picture held by `owner`."""
        return json.dumps({"docType": DOC_TYPE, "owner": owner.lower()})

    def query_by_owner(self, owner: str) -> List[KeyValue]:
        if not owner:
            raise InvalidArgument("owner must be a non-empty string")
        return self.query(self.owner_expression(owner))


__all__ = [
    "MAX_PAGE_SIZE",
    "PredicateQueryEngine",
    "RangeQueryEngine",
    "parse_decimal",
    "parse_page_size",
]

"""
Records package for statebook.

Primary records, the derived `category~id` index, and the read paths over
them (range/prefix scans, predicate queries, history, serialization).
"""

from statebook.records.codec import create_composite_key, prefix_range, split_composite_key
from statebook.records.history import HistoryReader
from statebook.records.index import (
    CATEGORY_INDEX,
    INDEX_SENTINEL,
    SecondaryIndexManager,
    TransferOutcome,
)
from statebook.records.queries import PredicateQueryEngine, RangeQueryEngine, parse_page_size
from statebook.records.repository import RecordRepository
from statebook.records.serializer import serialize_history, serialize_kv, serialize_page

__all__ = [
    # Codec
    "create_composite_key",
    "prefix_range",
    "split_composite_key",
    # Records and index
    "RecordRepository",
    "SecondaryIndexManager",
    "TransferOutcome",
    "CATEGORY_INDEX",
    "INDEX_SENTINEL",
    # Reads
    "RangeQueryEngine",
    "PredicateQueryEngine",
    "HistoryReader",
    "parse_page_size",
    # Serialization
    "serialize_kv",
    "serialize_page",
    "serialize_history",
]

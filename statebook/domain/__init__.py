"""
Domain package for statebook.

Exports the record schema and the result shapes shared by the store adapters,
the query engines and the serializer. Keep this package focused on data
definitions and validation concerns.
"""

from statebook.domain.models import (
    DOC_TYPE,
    HistoryEntry,
    KeyValue,
    QueryPage,
    QueryResponseMetadata,
    Record,
)

__all__ = [
    "DOC_TYPE",
    "HistoryEntry",
    "KeyValue",
    "QueryPage",
    "QueryResponseMetadata",
    "Record",
]

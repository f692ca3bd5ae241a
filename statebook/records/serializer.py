"""
Result Serializer: one JSON array shape for every query result.

Stored values are spliced into the output as they are, without being parsed
and re-encoded; only keys and metadata go through `json.dumps`.

    [{"key": "p1", "record": {...}}, ...]
    [{"txId": "...", "value": {...} | null, "timestamp": "...", "isDelete": false}, ...]

Paginated results end with one extra element:

    {"responseMetadata": {"recordsCount": 2, "bookmark": "p2"}}
"""

from __future__ import annotations

import json
from typing import Iterable, List, Optional

from statebook.domain.models import HistoryEntry, KeyValue, QueryPage, QueryResponseMetadata
from statebook.errors import SerializationError


def _raw(key: str, value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SerializationError(key, "value is not valid UTF-8") from exc


def _array(members: List[str]) -> bytes:
    return ("[" + ",".join(members) + "]").encode("utf-8")


def _metadata_member(metadata: QueryResponseMetadata) -> str:
    return json.dumps(
        {
            "responseMetadata": {
                "recordsCount": metadata.fetched_records_count,
                "bookmark": metadata.bookmark,
            }
        }
    )


def _kv_members(results: Iterable[KeyValue]) -> List[str]:
    return [
        '{"key":' + json.dumps(item.key) + ',"record":' + _raw(item.key, item.value) + "}"
        for item in results
    ]


def serialize_kv(
    results: Iterable[KeyValue], metadata: Optional[QueryResponseMetadata] = None
) -> bytes:
    members = _kv_members(results)
    if metadata is not None:
        members.append(_metadata_member(metadata))
    return _array(members)


def serialize_page(page: QueryPage) -> bytes:
    return serialize_kv(page.results, page.metadata)


def serialize_history(entries: Iterable[HistoryEntry], key: str = "") -> bytes:
    members = []
    for entry in entries:
        value = "null" if entry.is_delete or entry.value is None else _raw(key, entry.value)
        members.append(
            '{"txId":'
            + json.dumps(entry.tx_id)
            + ',"value":'
            + value
            + ',"timestamp":'
            + json.dumps(entry.timestamp.isoformat())
            + ',"isDelete":'
            + json.dumps(entry.is_delete)
            + "}"
        )
    return _array(members)


__all__ = ["serialize_kv", "serialize_page", "serialize_history"]

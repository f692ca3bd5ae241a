"""
Composite keys for derived indexes.

A composite key is the index name followed by each attribute, every component
terminated by U+0000 and the whole key prefixed with U+0000:

    "\\x00category~id\\x00blue\\x00p1\\x00"

The leading separator puts composite keys in their own namespace, sorted
before every simple key. Keys compare by code point, so entries of one index
are contiguous and ordered like their attribute tuples, and a partial key is a
prefix of every full key it covers.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from statebook.errors import InvalidArgument

SEPARATOR = "\x00"
MAX_UNICODE_RUNE = "\U0010ffff"


def _validate_component(value: str) -> None:
    if SEPARATOR in value or MAX_UNICODE_RUNE in value:
        raise InvalidArgument(
            f"composite key component {value!r} contains a reserved character "
            "(U+0000 or U+10FFFF)"
        )
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidArgument(f"composite key component {value!r} is not valid text") from exc


def create_composite_key(index_name: str, parts: Sequence[str]) -> str:
    """Encode an index name and attribute values into one store key."""
    if not index_name:
        raise InvalidArgument("composite key index name must be a non-empty string")
    _validate_component(index_name)
    key = SEPARATOR + index_name + SEPARATOR
    for part in parts:
        _validate_component(part)
        key += part + SEPARATOR
    return key


def split_composite_key(key: str) -> Tuple[str, List[str]]:
    """Decode a key produced by `create_composite_key`."""
    if len(key) < 3 or not key.startswith(SEPARATOR) or not key.endswith(SEPARATOR):
        raise InvalidArgument(f"{key!r} is not a composite key")
    components = key[1:-1].split(SEPARATOR)
    index_name, parts = components[0], components[1:]
    if not index_name:
        raise InvalidArgument(f"{key!r} is not a composite key")
    return index_name, parts


def prefix_range(index_name: str, partial_parts: Sequence[str]) -> Tuple[str, str]:
    """Half-open key range holding every key that starts with the partial key."""
    start = create_composite_key(index_name, partial_parts)
    return start, start + MAX_UNICODE_RUNE


def is_composite_key(key: str) -> bool:
    return key.startswith(SEPARATOR)


__all__ = [
    "SEPARATOR",
    "MAX_UNICODE_RUNE",
    "create_composite_key",
    "split_composite_key",
    "prefix_range",
    "is_composite_key",
]

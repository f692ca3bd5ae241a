"""
Domain models for statebook.

Defines the stored record schema plus the transient shapes that query and
history operations hand back. Record values are persisted as the JSON emitted
by `Record.to_json`.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

DOC_TYPE = "picture"


class Record(BaseModel):
    """
    Representation of a single primary record in the world state.
    """

    doc_type: Literal["picture"] = Field(
        DOC_TYPE, alias="docType", description="Entity type within the shared keyspace."
    )
    id: str = Field(..., min_length=1, description="Primary key.")
    category: str = Field(..., min_length=1, description="Secondary-index attribute.")
    quantity: int = Field(..., ge=0, description="Non-negative size/amount.")
    owner: str = Field(..., min_length=1, description="Current owner.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    @field_validator("category", "owner")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.lower()

    def to_json(self) -> bytes:
        """Serialize to the stored JSON form."""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes) -> "Record":
        return cls.model_validate_json(data)

    def with_owner(self, owner: str) -> "Record":
        """Copy with a new (normalized) owner."""
        return Record(
            id=self.id, category=self.category, quantity=self.quantity, owner=owner
        )


class KeyValue(BaseModel):
    """One (key, value) pair produced by a range, prefix or predicate scan."""

    key: str
    value: bytes

    model_config = {"frozen": True}


class HistoryEntry(BaseModel):
    """
    One past state of a key, as retained by the store's version log.

    `value` is None when the entry records a deletion.
    """

    tx_id: str
    timestamp: datetime
    is_delete: bool = False
    value: Optional[bytes] = None

    model_config = {"frozen": True}


class QueryResponseMetadata(BaseModel):
    """Continuation info returned alongside a page of results."""

    fetched_records_count: int = Field(..., ge=0)
    bookmark: str = ""

    model_config = {"frozen": True}


class QueryPage(BaseModel):
    """A bounded page of scan results plus its continuation metadata."""

    results: List[KeyValue]
    metadata: QueryResponseMetadata

    model_config = {"frozen": True}


__all__ = [
    "DOC_TYPE",
    "Record",
    "KeyValue",
    "HistoryEntry",
    "QueryResponseMetadata",
    "QueryPage",
]

"""
statebook - record management over an ordered key-value store.

This package keeps three things in step on top of a pluggable store:

- Primary records keyed by id (JSON values)
- A derived `category~id` secondary index made of key-only composite keys
- The store's per-key version history

and serves point reads, range and prefix scans, predicate queries, paginated
variants of both, and full change history through one dispatcher.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from statebook.config import Settings, get_settings
from statebook.dispatcher import Dispatcher, InvokeResult, Operation, available_operations
from statebook.domain.models import HistoryEntry, KeyValue, QueryPage, QueryResponseMetadata, Record
from statebook.errors import (
    AlreadyExists,
    InvalidArgument,
    NotFound,
    SerializationError,
    StatebookError,
    StoreFailure,
    TransferAborted,
    UnsupportedOperation,
)
from statebook.store import MemoryStateStore, PostgresStateStore, StateStore, open_store
from statebook.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Dispatch
    "Dispatcher",
    "InvokeResult",
    "Operation",
    "available_operations",
    # Domain
    "Record",
    "KeyValue",
    "HistoryEntry",
    "QueryPage",
    "QueryResponseMetadata",
    # Errors
    "StatebookError",
    "InvalidArgument",
    "AlreadyExists",
    "NotFound",
    "SerializationError",
    "UnsupportedOperation",
    "StoreFailure",
    "TransferAborted",
    # Stores
    "StateStore",
    "MemoryStateStore",
    "PostgresStateStore",
    "open_store",
    # Logging
    "configure_logging",
    "get_logger",
]

"""
Infrastructure package for statebook.

Centralizes database connectivity concerns (DSN, connection factory, session
setup). Keep this layer focused on I/O and resource management, decoupled
from record and query logic.
"""

from statebook.infrastructure.db_factory import (
    apply_statement_timeout,
    build_dsn,
    get_sync_connection,
)

__all__ = [
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
]

"""
Database connection factory utilities for statebook.

Provides DSN composition, session setup, and dedicated PostgreSQL
connections for the store adapter. Every operation runs on one connection,
opened for the invocation and closed afterwards.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import Connection
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from statebook.config import get_settings


def build_dsn() -> str:
    """Compose a DSN string from settings."""
    settings = get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def apply_statement_timeout(cur: psycopg.Cursor, timeout_ms: int) -> None:
    """
    Set the session statement timeout. A value of 0 leaves the server default.
    """
    if timeout_ms > 0:
        cur.execute(f"SET statement_timeout = {int(timeout_ms)}")


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated autocommit connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Transactions are opened explicitly by the store adapter.

    Parameters
    ----------
    dsn : str, optional
        Connection string override; defaults to one built from settings.

    Returns
    -------
    Connection
        A new psycopg connection instance.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn(), autocommit=True)


__all__ = [
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
]

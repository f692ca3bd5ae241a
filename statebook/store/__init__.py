"""
Store package for statebook.

Re-exports the store protocol and the concrete adapters, and resolves the
configured backend by name.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from statebook.config import Settings, get_settings
from statebook.store.abstract import AbstractStateStore, ScopedIterator, StateStore, TxContext
from statebook.store.memory import MemoryStateStore
from statebook.store.postgres import PostgresStateStore


def _store_factories() -> Dict[str, Callable[[], StateStore]]:
    """Registry of available store backends."""
    return {
        "memory": lambda: MemoryStateStore(),
        "postgres": lambda: PostgresStateStore.connect(),
    }


def available_backends() -> List[str]:
    """List available backend names."""
    return sorted(_store_factories().keys())


def open_store(settings: Optional[Settings] = None) -> StateStore:
    """Open the backend named by `STORE_BACKEND`."""
    settings = settings or get_settings()
    factories = _store_factories()
    if settings.store_backend not in factories:
        raise ValueError(
            f"Unknown store backend '{settings.store_backend}'. "
            f"Available: {', '.join(factories)}"
        )
    return factories[settings.store_backend]()


__all__ = [
    # Abstracts
    "AbstractStateStore",
    "ScopedIterator",
    "StateStore",
    "TxContext",
    # Concrete adapters
    "MemoryStateStore",
    "PostgresStateStore",
    # Resolution
    "available_backends",
    "open_store",
]

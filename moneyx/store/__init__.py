"""
Store Package

Provides the abstract ledger store interface and the in-memory
implementation used by the app, plus the demo seed dataset.
"""

from moneyx.store.interface import (
    ChangeSet,
    ConcurrentModificationError,
    EntityNotFoundError,
    LedgerStoreInterface,
    StorageError,
)
from moneyx.store.memory import InMemoryLedgerStore
from moneyx.store.mock_data import MOCK_USER_ID, build_mock_snapshot

__all__ = [
    # Interface
    "ChangeSet",
    "LedgerStoreInterface",
    # Exceptions
    "ConcurrentModificationError",
    "EntityNotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryLedgerStore",
    "MOCK_USER_ID",
    "build_mock_snapshot",
]

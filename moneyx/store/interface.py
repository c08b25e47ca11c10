"""
Abstract Ledger Store Interface

DESIGN DECISION: We define an abstract interface for the entity store.
This allows us to:
1. Keep the in-memory store for the demo and for tests
2. Swap in a real database later without touching ledger rules
3. Keep business logic decoupled from storage implementation

Writes arrive as a ChangeSet: everything one ledger operation wants to
change, applied as a single unit. A store must apply all of it or none
of it, and must reject a change set built against a stale version.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel

from moneyx.models.ledger import UserPreferences
from moneyx.models.snapshot import LedgerSnapshot


@dataclass
class ChangeSet:
    """
    All mutations of one ledger operation.

    Attributes:
        base_version: Store version the changes were computed against
        upserts: Entities to insert or replace (matched by type and id)
        deletes: (entity type, id) pairs to remove
        preferences: Replacement preferences, if they changed
    """

    base_version: int
    upserts: list[BaseModel] = field(default_factory=list)
    deletes: list[tuple[type[BaseModel], str]] = field(default_factory=list)
    preferences: Optional[UserPreferences] = None

    def put(self, *entities: BaseModel) -> "ChangeSet":
        self.upserts.extend(entities)
        return self

    def remove(self, entity_type: type[BaseModel], entity_id: str) -> "ChangeSet":
        self.deletes.append((entity_type, entity_id))
        return self

    @property
    def is_empty(self) -> bool:
        return not self.upserts and not self.deletes and self.preferences is None


class LedgerStoreInterface(ABC):
    """
    Abstract interface for the ledger entity store.

    Only the ledger service calls the mutating methods. Everyone else
    reads through `snapshot()`.
    """

    @property
    @abstractmethod
    def version(self) -> int:
        """Monotonic counter bumped by every successful commit."""
        pass

    @abstractmethod
    def snapshot(self) -> LedgerSnapshot:
        """
        Return an immutable copy of the current state.

        Returns:
            The current LedgerSnapshot
        """
        pass

    @abstractmethod
    async def commit(self, changes: ChangeSet) -> LedgerSnapshot:
        """
        Apply a change set as one unit.

        Args:
            changes: Everything one operation wants to change

        Returns:
            The snapshot after the commit

        Raises:
            ConcurrentModificationError: If changes.base_version is stale
            EntityNotFoundError: If a delete targets a missing entity
            StorageError: If the change set cannot be applied
        """
        pass

    @abstractmethod
    async def load(self, snapshot: LedgerSnapshot) -> None:
        """
        Replace all state with the given snapshot (used on sign-in).

        Args:
            snapshot: Collections and preferences for the new session
        """
        pass

    @abstractmethod
    async def reset(self, preferences: Optional[UserPreferences] = None) -> None:
        """
        Clear every collection and restore default preferences (sign-out).

        Args:
            preferences: Preferences to restore; store defaults if None
        """
        pass


class StorageError(Exception):
    """Base exception for store operations."""
    pass


class EntityNotFoundError(StorageError):
    """Entity not found in the store."""
    pass


class ConcurrentModificationError(StorageError):
    """Change set was computed against a stale store version."""
    pass

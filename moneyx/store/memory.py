"""
In-Memory Ledger Store

Holds one user's collections for the lifetime of a session.

TRADEOFFS:
- Nothing survives a restart (the app re-seeds on sign-in)
- Commits copy the collections; fine for personal-scale data

A commit builds the next state completely before swapping it in, so a
failing change set leaves the previous state untouched.
"""

from typing import Optional

from pydantic import BaseModel

from moneyx.models.ledger import (
    Account,
    Bill,
    Budget,
    Category,
    Notification,
    SavingsGoal,
    Transaction,
    UserPreferences,
)
from moneyx.models.snapshot import LedgerSnapshot
from moneyx.store.interface import (
    ChangeSet,
    ConcurrentModificationError,
    EntityNotFoundError,
    LedgerStoreInterface,
    StorageError,
)


# Entity type -> snapshot field
COLLECTIONS: dict[type[BaseModel], str] = {
    Account: "accounts",
    Transaction: "transactions",
    Category: "categories",
    Bill: "bills",
    SavingsGoal: "savings_goals",
    Budget: "budgets",
    Notification: "notifications",
}


def _collection_for(entity_type: type[BaseModel]) -> str:
    try:
        return COLLECTIONS[entity_type]
    except KeyError:
        raise StorageError(f"Unsupported entity type: {entity_type.__name__}")


class InMemoryLedgerStore(LedgerStoreInterface):
    """Store backed by a single immutable LedgerSnapshot reference."""

    def __init__(self, default_preferences: Optional[UserPreferences] = None):
        self._default_preferences = default_preferences or UserPreferences()
        self._state = LedgerSnapshot(preferences=self._default_preferences)

    @property
    def version(self) -> int:
        return self._state.version

    def snapshot(self) -> LedgerSnapshot:
        # Frozen model: safe to hand out without copying
        return self._state

    async def commit(self, changes: ChangeSet) -> LedgerSnapshot:
        current = self._state
        if changes.base_version != current.version:
            raise ConcurrentModificationError(
                f"Change set built on version {changes.base_version}, "
                f"store is at version {current.version}"
            )

        collections = {
            name: {entity.id: entity for entity in getattr(current, name)}
            for name in COLLECTIONS.values()
        }

        for entity_type, entity_id in changes.deletes:
            items = collections[_collection_for(entity_type)]
            if entity_id not in items:
                raise EntityNotFoundError(
                    f"{entity_type.__name__} {entity_id} does not exist"
                )
            del items[entity_id]

        for entity in changes.upserts:
            collections[_collection_for(type(entity))][entity.id] = entity

        update: dict = {name: tuple(items.values()) for name, items in collections.items()}
        update["version"] = current.version + 1
        if changes.preferences is not None:
            update["preferences"] = changes.preferences

        self._state = current.model_copy(update=update)
        return self._state

    async def load(self, snapshot: LedgerSnapshot) -> None:
        self._state = snapshot.model_copy(update={"version": self._state.version + 1})

    async def reset(self, preferences: Optional[UserPreferences] = None) -> None:
        self._state = LedgerSnapshot(
            version=self._state.version + 1,
            preferences=preferences or self._default_preferences,
        )

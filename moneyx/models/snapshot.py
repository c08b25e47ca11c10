"""
Read-only views of the ledger store.

A LedgerSnapshot is what readers (aggregations, the dashboard) get
from the store. It is a frozen copy: holding on to one never blocks
or observes later ledger operations.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

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


class TransactionView(BaseModel):
    """
    A transaction joined with its current category and account name.

    The join happens at read time, so category edits show up on every
    referencing transaction without touching the transactions.
    """
    model_config = ConfigDict(frozen=True)

    transaction: Transaction
    category: Optional[Category] = None
    account_name: Optional[str] = None

    @property
    def category_name(self) -> str:
        return self.category.name if self.category else "Other"

    @property
    def category_color(self) -> str:
        return self.category.color if self.category else "#CBD5E1"


class LedgerSnapshot(BaseModel):
    """Immutable copy of every collection for the active user."""
    model_config = ConfigDict(frozen=True)

    version: int = Field(default=0, ge=0)
    user_id: Optional[str] = None
    accounts: tuple[Account, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    categories: tuple[Category, ...] = ()
    bills: tuple[Bill, ...] = ()
    savings_goals: tuple[SavingsGoal, ...] = ()
    budgets: tuple[Budget, ...] = ()
    notifications: tuple[Notification, ...] = ()
    preferences: UserPreferences = Field(default_factory=UserPreferences)

    # Lookups

    def account(self, account_id: Optional[str]) -> Optional[Account]:
        return next((a for a in self.accounts if a.id == account_id), None)

    def transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)

    def category(self, category_id: Optional[str]) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)

    def bill(self, bill_id: str) -> Optional[Bill]:
        return next((b for b in self.bills if b.id == bill_id), None)

    def savings_goal(self, goal_id: str) -> Optional[SavingsGoal]:
        return next((g for g in self.savings_goals if g.id == goal_id), None)

    def budget(self, budget_id: str) -> Optional[Budget]:
        return next((b for b in self.budgets if b.id == budget_id), None)

    def budget_for(self, month: int, year: int) -> Optional[Budget]:
        return next(
            (b for b in self.budgets if b.month == month and b.year == year),
            None,
        )

    def notification(self, notification_id: str) -> Optional[Notification]:
        return next((n for n in self.notifications if n.id == notification_id), None)

    def transfer_legs(self, transfer_id: str) -> list[Transaction]:
        """Both records of one transfer."""
        return [t for t in self.transactions if t.transfer_id == transfer_id]

    # Joins

    def transaction_views(self) -> list[TransactionView]:
        """Every transaction joined with its category and account name."""
        categories = {c.id: c for c in self.categories}
        accounts = {a.id: a for a in self.accounts}
        return [
            TransactionView(
                transaction=t,
                category=categories.get(t.category_id),
                account_name=accounts[t.account_id].name if t.account_id in accounts else None,
            )
            for t in self.transactions
        ]

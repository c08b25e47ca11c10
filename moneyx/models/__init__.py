"""
Data Models Package

This package contains all Pydantic models used in MoneyX.
All data flowing through the ledger must conform to these schemas.
"""

from moneyx.models.ledger import (
    Account,
    AccountType,
    Bill,
    Budget,
    BudgetCategory,
    Category,
    CategoryType,
    Notification,
    NotificationSettings,
    NotificationType,
    RecurrenceType,
    SavingsGoal,
    Transaction,
    TransactionType,
    User,
    UserPreferences,
    merge_fields,
    new_id,
)
from moneyx.models.reports import (
    BudgetLine,
    BudgetUtilization,
    CategorySpending,
    Insight,
    MonthlySummary,
)
from moneyx.models.results import (
    ErrorKind,
    LedgerMessage,
    LedgerResult,
    MessageKind,
)
from moneyx.models.snapshot import LedgerSnapshot, TransactionView

__all__ = [
    # Ledger entities
    "Account",
    "AccountType",
    "Bill",
    "Budget",
    "BudgetCategory",
    "Category",
    "CategoryType",
    "Notification",
    "NotificationSettings",
    "NotificationType",
    "RecurrenceType",
    "SavingsGoal",
    "Transaction",
    "TransactionType",
    "User",
    "UserPreferences",
    "merge_fields",
    "new_id",
    # Snapshots
    "LedgerSnapshot",
    "TransactionView",
    # Results
    "ErrorKind",
    "LedgerMessage",
    "LedgerResult",
    "MessageKind",
    # Reports
    "BudgetLine",
    "BudgetUtilization",
    "CategorySpending",
    "Insight",
    "MonthlySummary",
]

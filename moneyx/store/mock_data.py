"""
Demo dataset loaded when a user signs in.

There is no real backend yet; every session starts from this fixed
set of categories, accounts, transactions, bills, goals and budgets.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from moneyx.models.ledger import (
    Account,
    AccountType,
    Bill,
    Budget,
    BudgetCategory,
    Category,
    CategoryType,
    Notification,
    NotificationType,
    RecurrenceType,
    SavingsGoal,
    Transaction,
    TransactionType,
    UserPreferences,
)
from moneyx.models.snapshot import LedgerSnapshot


MOCK_USER_ID = "user-123"


def _categories() -> tuple[Category, ...]:
    rows = [
        ("cat-1", "Housing", CategoryType.EXPENSE, "#ef4444"),
        ("cat-2", "Groceries", CategoryType.EXPENSE, "#22c55e"),
        ("cat-3", "Dining", CategoryType.EXPENSE, "#f97316"),
        ("cat-4", "Transportation", CategoryType.EXPENSE, "#3b82f6"),
        ("cat-5", "Entertainment", CategoryType.EXPENSE, "#9b87f5"),
        ("cat-6", "Utilities", CategoryType.EXPENSE, "#64748b"),
        ("cat-7", "Healthcare", CategoryType.EXPENSE, "#0ea5e9"),
        ("cat-8", "Shopping", CategoryType.EXPENSE, "#8b5cf6"),
        ("cat-9", "Gifts", CategoryType.EXPENSE, "#9333ea"),
        ("cat-10", "Salary", CategoryType.INCOME, "#22c55e"),
        ("cat-11", "Investments", CategoryType.INCOME, "#3b82f6"),
        ("cat-12", "Transfer", CategoryType.EXPENSE, "#64748b"),
    ]
    return tuple(
        Category(id=cid, name=name, type=ctype, color=color)
        for cid, name, ctype, color in rows
    )


def _accounts(user_id: str) -> tuple[Account, ...]:
    rows = [
        ("acc-1", "Main Checking", AccountType.CHECKING, "3500"),
        ("acc-2", "Savings", AccountType.SAVINGS, "12500"),
        ("acc-3", "Credit Card", AccountType.CREDIT, "-1500"),
        ("acc-4", "Investment", AccountType.INVESTMENT, "45000"),
    ]
    return tuple(
        Account(id=aid, name=name, type=atype, balance=Decimal(balance), user_id=user_id)
        for aid, name, atype, balance in rows
    )


def _transactions() -> tuple[Transaction, ...]:
    rows = [
        ("trans-1", datetime(2025, 5, 3), "250", "Dividend payment", "cat-11", "acc-4", TransactionType.INCOME),
        ("trans-2", datetime(2025, 5, 2), "-45", "Dinner at Italian restaurant", "cat-3", "acc-3", TransactionType.EXPENSE),
        ("trans-3", datetime(2025, 5, 2), "100", "Birthday gift", "cat-9", "acc-2", TransactionType.INCOME),
        ("trans-4", datetime(2025, 5, 1), "-85.75", "Grocery shopping", "cat-2", "acc-1", TransactionType.EXPENSE),
        ("trans-5", datetime(2025, 5, 1), "-1200", "Rent payment", "cat-1", "acc-1", TransactionType.EXPENSE),
        ("trans-6", datetime(2025, 5, 1), "3500", "Salary deposit", "cat-10", "acc-1", TransactionType.INCOME),
        ("trans-7", datetime(2025, 4, 30), "-42.50", "Pharmacy", "cat-7", "acc-3", TransactionType.EXPENSE),
    ]
    return tuple(
        Transaction(
            id=tid,
            date=when,
            amount=Decimal(amount),
            description=description,
            category_id=category_id,
            account_id=account_id,
            type=ttype,
        )
        for tid, when, amount, description, category_id, account_id, ttype in rows
    )


def _bills() -> tuple[Bill, ...]:
    rows = [
        ("bill-1", "Internet", "75", date(2025, 5, 15)),
        ("bill-2", "Phone Bill", "85", date(2025, 5, 18)),
        ("bill-3", "Electric Bill", "125", date(2025, 5, 20)),
        ("bill-4", "Rent", "1200", date(2025, 6, 1)),
    ]
    return tuple(
        Bill(
            id=bid,
            name=name,
            amount=Decimal(amount),
            due_date=due,
            is_recurring=True,
            recurrence=RecurrenceType.MONTHLY,
        )
        for bid, name, amount, due in rows
    )


def _savings_goals() -> tuple[SavingsGoal, ...]:
    return (
        SavingsGoal(
            id="goal-1",
            name="Vacation",
            target_amount=Decimal("3000"),
            current_amount=Decimal("1200"),
            target_date=date(2025, 12, 31),
            color="#3b82f6",
        ),
        SavingsGoal(
            id="goal-2",
            name="Emergency Fund",
            target_amount=Decimal("10000"),
            current_amount=Decimal("4500"),
            color="#22c55e",
        ),
        SavingsGoal(
            id="goal-3",
            name="New Laptop",
            target_amount=Decimal("1500"),
            current_amount=Decimal("800"),
            target_date=date(2025, 8, 15),
            color="#9b87f5",
        ),
    )


def _budgets() -> tuple[Budget, ...]:
    lines = [
        ("cat-1", "1200", "1200"),
        ("cat-5", "100", "65.99"),
        ("cat-8", "150", "89.50"),
        ("cat-7", "100", "42.00"),
        ("cat-6", "300", "120.50"),
    ]
    return (
        Budget(
            id="budget-1",
            month=5,
            year=2025,
            categories=[
                BudgetCategory(
                    category_id=cid,
                    allocated=Decimal(allocated),
                    spent=Decimal(spent),
                )
                for cid, allocated, spent in lines
            ],
        ),
    )


def _notifications(now: datetime) -> tuple[Notification, ...]:
    rows = [
        ("notif-1", NotificationType.INSIGHT,
         "Your spending on dining out has increased by 30% compared to last month."),
        ("notif-2", NotificationType.BILL,
         "You have 3 bills due within the next 7 days totaling ₹285."),
        ("notif-3", NotificationType.INSIGHT,
         "Based on your spending habits, you could save ₹150 more each month "
         "by reducing entertainment expenses."),
        ("notif-4", NotificationType.INSIGHT,
         "Based on your history, we expect you'll need to pay for car insurance "
         "next month (~₹180)."),
    ]
    return tuple(
        Notification(id=nid, type=ntype, message=message, date=now)
        for nid, ntype, message in rows
    )


def build_mock_snapshot(
    user_id: str = MOCK_USER_ID,
    preferences: Optional[UserPreferences] = None,
    now: Optional[datetime] = None,
) -> LedgerSnapshot:
    """
    Build the demo dataset for a signed-in user.

    Args:
        user_id: Owner stamped on every account
        preferences: Preferences to start with (defaults if None)
        now: Timestamp for the seeded notifications
    """
    return LedgerSnapshot(
        user_id=user_id,
        accounts=_accounts(user_id),
        transactions=_transactions(),
        categories=_categories(),
        bills=_bills(),
        savings_goals=_savings_goals(),
        budgets=_budgets(),
        notifications=_notifications(now or datetime.now()),
        preferences=preferences or UserPreferences(),
    )

"""
Aggregation Engine

Pure, read-only functions over a LedgerSnapshot. Nothing is cached:
every call recomputes from the snapshot it is given, so results always
reflect the last committed ledger operation.

DESIGN DECISION: Transfers never count as income or expense. Money
moving between the user's own accounts does not change what they
earned or spent.

DESIGN DECISION: Period filters use the transaction's calendar date.
Ordering is always explicit (sorted here), never the order transactions
happen to be stored in.
"""

import math
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from moneyx.models.ledger import (
    Bill,
    SavingsGoal,
    Transaction,
    TransactionType,
)
from moneyx.models.reports import (
    BudgetLine,
    BudgetUtilization,
    CategorySpending,
    MonthlySummary,
)
from moneyx.models.snapshot import LedgerSnapshot, TransactionView


ZERO = Decimal("0")

UNKNOWN_CATEGORY_NAME = "Other"
UNKNOWN_CATEGORY_COLOR = "#CBD5E1"


# =============================================================================
# PERIOD HELPERS
# =============================================================================

def previous_month(month: int, year: int) -> tuple[int, int]:
    """Return (month, year) of the month before, rolling over January."""
    if month == 1:
        return 12, year - 1
    return month - 1, year


def _in_month(transaction: Transaction, month: int, year: int) -> bool:
    return transaction.date.month == month and transaction.date.year == year


def _month_transactions(
    snapshot: LedgerSnapshot,
    month: int,
    year: int,
    kind: TransactionType,
) -> list[Transaction]:
    return [
        t for t in snapshot.transactions
        if t.type == kind and _in_month(t, month, year)
    ]


def _to_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


# =============================================================================
# BALANCES & MONTHLY TOTALS
# =============================================================================

def total_balance(snapshot: LedgerSnapshot) -> Decimal:
    """Sum of every account balance (credit accounts count negative)."""
    return sum((a.balance for a in snapshot.accounts), ZERO)


def monthly_income(snapshot: LedgerSnapshot, month: int, year: int) -> Decimal:
    return sum(
        (t.amount for t in _month_transactions(snapshot, month, year, TransactionType.INCOME)),
        ZERO,
    )


def monthly_expenses(snapshot: LedgerSnapshot, month: int, year: int) -> Decimal:
    """Magnitude of expenses in the month (always >= 0)."""
    return sum(
        (abs(t.amount) for t in _month_transactions(snapshot, month, year, TransactionType.EXPENSE)),
        ZERO,
    )


def monthly_net_income(snapshot: LedgerSnapshot, month: int, year: int) -> Decimal:
    """Income minus |expenses| for transactions dated in the given month."""
    return monthly_income(snapshot, month, year) - monthly_expenses(snapshot, month, year)


def percentage_change(
    current: Union[Decimal, int, float],
    previous: Union[Decimal, int, float],
) -> str:
    """
    Percentage change from `previous` to `current`, one decimal place.

    Returns:
        "New" when previous is 0 and current is positive,
        "0.0" when previous is 0 otherwise,
        "N/A" when the result is not a finite number
    """
    current_value = float(current)
    previous_value = float(previous)

    if previous_value == 0:
        return "New" if current_value > 0 else "0.0"

    change = (current_value - previous_value) / abs(previous_value) * 100
    if not math.isfinite(change):
        return "N/A"
    return f"{change:.1f}"


def monthly_summary(snapshot: LedgerSnapshot, month: int, year: int) -> MonthlySummary:
    """Income, expenses and net for a month with changes vs. the month before."""
    prev_month, prev_year = previous_month(month, year)

    income = monthly_income(snapshot, month, year)
    expenses = monthly_expenses(snapshot, month, year)
    previous_income = monthly_income(snapshot, prev_month, prev_year)
    previous_expenses = monthly_expenses(snapshot, prev_month, prev_year)

    return MonthlySummary(
        month=month,
        year=year,
        income=income,
        expenses=expenses,
        net_income=income - expenses,
        previous_income=previous_income,
        previous_expenses=previous_expenses,
        previous_net_income=previous_income - previous_expenses,
        income_change=percentage_change(income, previous_income),
        expenses_change=percentage_change(expenses, previous_expenses),
        net_income_change=percentage_change(
            income - expenses, previous_income - previous_expenses
        ),
    )


# =============================================================================
# CATEGORIES & BUDGETS
# =============================================================================

def expense_totals_by_category(
    snapshot: LedgerSnapshot,
    month: int,
    year: int,
) -> dict[str, Decimal]:
    """Magnitude of expenses per category id for one month."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in _month_transactions(snapshot, month, year, TransactionType.EXPENSE):
        totals[t.category_id] += abs(t.amount)
    return dict(totals)


def spending_by_category(
    snapshot: LedgerSnapshot,
    month: int,
    year: int,
) -> list[CategorySpending]:
    """
    Expense totals grouped by category, largest first.

    Each row carries its share of the month's total expenses as a
    string such as "37.5%". Unknown categories show as "Other".
    """
    totals = expense_totals_by_category(snapshot, month, year)
    grand_total = sum(totals.values(), ZERO)

    rows = []
    for category_id, amount in totals.items():
        category = snapshot.category(category_id)
        if grand_total > 0:
            share = f"{float(amount / grand_total * 100):.1f}%"
        else:
            share = "0%"
        rows.append(CategorySpending(
            category_id=category_id,
            name=category.name if category else UNKNOWN_CATEGORY_NAME,
            color=category.color if category else UNKNOWN_CATEGORY_COLOR,
            amount=amount,
            percentage=share,
        ))

    return sorted(rows, key=lambda row: row.amount, reverse=True)


def budget_utilization(
    snapshot: LedgerSnapshot,
    month: int,
    year: int,
) -> Optional[BudgetUtilization]:
    """
    Allocated vs. actually spent for the month's budget.

    `spent` is computed from the month's expense transactions, not read
    from the stored budget, so it can never be stale.

    Returns:
        None if no budget exists for the month
    """
    budget = snapshot.budget_for(month, year)
    if budget is None:
        return None

    totals = expense_totals_by_category(snapshot, month, year)
    lines = []
    for allocation in budget.categories:
        category = snapshot.category(allocation.category_id)
        lines.append(BudgetLine(
            category_id=allocation.category_id,
            name=category.name if category else UNKNOWN_CATEGORY_NAME,
            allocated=allocation.allocated,
            spent=totals.get(allocation.category_id, ZERO),
        ))

    return BudgetUtilization(
        budget_id=budget.id,
        month=month,
        year=year,
        lines=lines,
        total_allocated=sum((line.allocated for line in lines), ZERO),
        total_spent=sum((line.spent for line in lines), ZERO),
    )


# =============================================================================
# TRANSACTIONS, BILLS & GOALS
# =============================================================================

def sorted_transactions(
    snapshot: LedgerSnapshot,
    newest_first: bool = True,
) -> list[TransactionView]:
    """Transactions joined with their category, ordered by date."""
    return sorted(
        snapshot.transaction_views(),
        key=lambda view: view.transaction.date,
        reverse=newest_first,
    )


def days_until_due(
    due: Union[date, datetime],
    today: Optional[Union[date, datetime]] = None,
) -> int:
    """
    Whole days from today until `due`.

    Both sides are truncated to midnight first, so the time of day
    never shifts the answer by one. Negative means overdue.
    """
    today = _to_date(today) if today is not None else date.today()
    return (_to_date(due) - today).days


def upcoming_bills(
    snapshot: LedgerSnapshot,
    within_days: int,
    today: Optional[date] = None,
) -> list[Bill]:
    """Unpaid bills due within the window (overdue included), soonest first."""
    due_soon = [
        b for b in snapshot.bills
        if not b.is_paid and days_until_due(b.due_date, today) <= within_days
    ]
    return sorted(due_soon, key=lambda b: b.due_date)


def goal_progress(goal: SavingsGoal) -> float:
    """Percent of the target reached; over 100 when over-funded."""
    return goal.progress_percent

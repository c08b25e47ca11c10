"""
Dashboard insights.

Short hints derived from the current snapshot: upcoming bills, the top
spending category, savings progress, spending trend and budget overrun.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from moneyx.config import get_settings
from moneyx.models.reports import Insight
from moneyx.models.snapshot import LedgerSnapshot
from moneyx.queries.aggregations import (
    budget_utilization,
    monthly_expenses,
    previous_month,
    spending_by_category,
    upcoming_bills,
)
from moneyx.queries.formatting import format_currency


def generate_insights(
    snapshot: LedgerSnapshot,
    today: Optional[date] = None,
    reminder_window_days: Optional[int] = None,
) -> list[Insight]:
    """
    Build the dashboard insight list for the month containing `today`.

    The first three insights are always present; the spending-trend and
    budget alerts only appear when they apply.
    """
    today = today or date.today()
    window = reminder_window_days or get_settings().ledger.bill_reminder_window_days
    currency = snapshot.preferences.currency
    month, year = today.month, today.year

    due = upcoming_bills(snapshot, window, today)
    due_total = sum((b.amount for b in due), Decimal("0"))
    insights = [
        Insight(
            type="alert",
            title="Bill reminders",
            description=(
                f"You have {len(due)} bills due in the next {window} days "
                f"totaling {format_currency(due_total, currency)}."
            ),
        )
    ]

    top = spending_by_category(snapshot, month, year)
    if top:
        description = (
            f"Your top spending category this month is {top[0].name} at "
            f"{format_currency(top[0].amount, currency)} "
            f"({top[0].percentage} of total expenses)."
        )
    else:
        description = "Add transactions to see insights about your top spending categories."
    insights.append(Insight(type="insight", title="Top spending category", description=description))

    if snapshot.savings_goals:
        goal = snapshot.savings_goals[0]
        description = f"You're {round(goal.progress_percent)}% toward your {goal.name} goal."
    else:
        description = "Set up a savings goal to track your progress."
    insights.append(Insight(type="insight", title="Savings progress", description=description))

    expenses = monthly_expenses(snapshot, month, year)
    previous = monthly_expenses(snapshot, *previous_month(month, year))
    if previous > 0 and expenses > previous:
        increase = (expenses - previous) / previous * 100
        insights.append(Insight(
            type="alert",
            title="Spending increased",
            description=(
                f"Your spending has increased by {increase:.0f}% compared to last month. "
                "Consider reviewing your budget."
            ),
        ))

    utilization = budget_utilization(snapshot, month, year)
    if utilization and utilization.overrun > 0:
        insights.append(Insight(
            type="alert",
            title="Budget warning",
            description=(
                f"You've exceeded your monthly budget by "
                f"{format_currency(utilization.overrun, currency)}."
            ),
        ))

    return insights

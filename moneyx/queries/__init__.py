"""
Aggregation Engine Package

Read-only functions over a LedgerSnapshot: totals, trends, category
breakdowns, budget usage, insights and CSV export.
"""

from moneyx.queries.aggregations import (
    budget_utilization,
    days_until_due,
    expense_totals_by_category,
    goal_progress,
    monthly_expenses,
    monthly_income,
    monthly_net_income,
    monthly_summary,
    percentage_change,
    previous_month,
    sorted_transactions,
    spending_by_category,
    total_balance,
    upcoming_bills,
)
from moneyx.queries.export import (
    export_filename,
    export_transactions_csv,
    transactions_in_range,
)
from moneyx.queries.formatting import format_currency, format_date
from moneyx.queries.insights import generate_insights

__all__ = [
    "budget_utilization",
    "days_until_due",
    "expense_totals_by_category",
    "goal_progress",
    "monthly_expenses",
    "monthly_income",
    "monthly_net_income",
    "monthly_summary",
    "percentage_change",
    "previous_month",
    "sorted_transactions",
    "spending_by_category",
    "total_balance",
    "upcoming_bills",
    "export_filename",
    "export_transactions_csv",
    "transactions_in_range",
    "format_currency",
    "format_date",
    "generate_insights",
]

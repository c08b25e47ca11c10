"""
Transaction export.

Writes the transactions of an inclusive date range as CSV text with the
columns Date, Description, Category, Account, Amount, Type.
"""

from datetime import date, datetime
from typing import Union

import pandas as pd

from moneyx.models.snapshot import LedgerSnapshot, TransactionView
from moneyx.queries.aggregations import sorted_transactions
from moneyx.queries.formatting import format_currency, format_date


CSV_HEADER = ["Date", "Description", "Category", "Account", "Amount", "Type"]


def _day(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def transactions_in_range(
    snapshot: LedgerSnapshot,
    date_from: Union[date, datetime],
    date_to: Union[date, datetime],
) -> list[TransactionView]:
    """Transactions dated between the two days (both inclusive), oldest first."""
    start, end = _day(date_from), _day(date_to)
    return [
        view for view in sorted_transactions(snapshot, newest_first=False)
        if start <= view.transaction.date.date() <= end
    ]


def export_transactions_csv(
    snapshot: LedgerSnapshot,
    date_from: Union[date, datetime],
    date_to: Union[date, datetime],
) -> str:
    """
    Render the range as CSV.

    Amounts are written as magnitudes in the preferred currency; the
    Type column tells income from expense. Fields holding commas or
    quotes (descriptions, grouped amounts) are quoted.
    """
    preferences = snapshot.preferences
    rows = []
    for view in transactions_in_range(snapshot, date_from, date_to):
        t = view.transaction
        rows.append([
            format_date(t.date, preferences.date_format),
            t.description,
            view.category_name,
            view.account_name or "-",
            format_currency(abs(t.amount), preferences.currency),
            t.type.value,
        ])

    frame = pd.DataFrame(rows, columns=CSV_HEADER)
    return frame.to_csv(index=False, lineterminator="\n")


def export_filename(date_from: Union[date, datetime], date_to: Union[date, datetime]) -> str:
    """Download name such as transactions_2025-05-01_to_2025-05-31.csv."""
    return f"transactions_{_day(date_from).isoformat()}_to_{_day(date_to).isoformat()}.csv"

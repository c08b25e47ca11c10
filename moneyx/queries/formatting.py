"""
Display formatting for amounts and dates.

Formatting is driven by UserPreferences (currency, date_format); the
ledger core itself never formats numbers.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Union


CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}

# Preference tokens -> strftime directives, longest first
_DATE_TOKENS = [
    ("YYYY", "%Y"),
    ("MM", "%m"),
    ("DD", "%d"),
    ("yyyy", "%Y"),
    ("dd", "%d"),
]


def format_currency(amount: Union[Decimal, int, float], currency: str = "INR") -> str:
    """
    Format an amount with two decimals and the currency symbol.

    Example:
        format_currency(Decimal("-1500"), "INR") -> "-₹1,500.00"
    """
    value = Decimal(str(amount))
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_date(value: Union[date, datetime], date_format: str = "MM/DD/YYYY") -> str:
    """Format a date using a preference pattern such as DD/MM/YYYY."""
    pattern = date_format
    for token, directive in _DATE_TOKENS:
        pattern = pattern.replace(token, directive)
    return value.strftime(pattern)

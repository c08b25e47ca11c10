"""
MoneyX - Source Package

Personal finance tracking for a single signed-in user: accounts,
transactions, bills, savings goals, budgets and categories.

DESIGN PRINCIPLES:
1. Balances move only through ledger operations
2. Every operation is all-or-nothing
3. Fail early, fail visibly (typed failures, never silent corrections)
4. Aggregates are recomputed from current state, never cached
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "MoneyX Team"

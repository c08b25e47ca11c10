"""
Ledger Operations Package

LedgerService is the only writer of the ledger store. Its operations
validate against one snapshot and commit all their changes at once.
"""

from moneyx.ledger.errors import (
    InsufficientFundsError,
    InvalidInputError,
    LedgerError,
    NotFoundError,
    PreconditionFailedError,
    ReferentialIntegrityError,
)
from moneyx.ledger.service import LedgerService, create_app_components

__all__ = [
    "InsufficientFundsError",
    "InvalidInputError",
    "LedgerError",
    "NotFoundError",
    "PreconditionFailedError",
    "ReferentialIntegrityError",
    "LedgerService",
    "create_app_components",
]

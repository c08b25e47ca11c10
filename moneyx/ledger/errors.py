"""
Ledger Errors

Raised inside ledger operations while a change set is being planned.
The service catches them and turns them into failed LedgerResults;
they never reach the caller.
"""

from typing import Optional

from moneyx.models.results import ErrorKind


class LedgerError(Exception):
    """
    Base exception for ledger rule violations.

    Attributes:
        kind: Failure category reported in the LedgerResult
        title: Optional notification title overriding the operation default
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, title: Optional[str] = None):
        self.message = message
        self.title = title
        super().__init__(message)


class NotFoundError(LedgerError):
    """A referenced account, transaction, goal, bill or category does not exist."""

    kind = ErrorKind.NOT_FOUND


class InsufficientFundsError(LedgerError):
    """The source account balance does not cover the amount required."""

    kind = ErrorKind.INSUFFICIENT_FUNDS


class ReferentialIntegrityError(LedgerError):
    """A delete is blocked by records that still reference the entity."""

    kind = ErrorKind.REFERENTIAL_INTEGRITY


class PreconditionFailedError(LedgerError):
    """The operation cannot run in the current state (no user, bad amount, ...)."""

    kind = ErrorKind.PRECONDITION_FAILED


class InvalidInputError(LedgerError):
    """A value passed to an operation cannot be used (e.g. a malformed amount)."""

    kind = ErrorKind.INVALID_INPUT

"""
Operation Result Models

Every ledger operation answers with a LedgerResult instead of raising.
Callers (the dashboard) branch on `success` and keep their dialog open
on failure.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    """Failure taxonomy for ledger operations."""
    NOT_FOUND = "not_found"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    REFERENTIAL_INTEGRITY = "referential_integrity"
    PRECONDITION_FAILED = "precondition_failed"
    CONFLICT = "conflict"
    INVALID_INPUT = "invalid_input"
    UNEXPECTED = "unexpected"


class LedgerResult(BaseModel):
    """Outcome of one ledger operation."""
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str = ""
    error: Optional[ErrorKind] = None
    entity_id: Optional[str] = Field(
        default=None,
        description="Id of the entity created or changed"
    )

    @classmethod
    def ok(cls, message: str, entity_id: Optional[str] = None) -> "LedgerResult":
        return cls(success=True, message=message, entity_id=entity_id)

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> "LedgerResult":
        return cls(success=False, error=error, message=message)

    def __bool__(self) -> bool:
        return self.success


class MessageKind(str, Enum):
    """Kind of message sent to the notification sink."""
    SUCCESS = "success"
    ERROR = "error"


class LedgerMessage(BaseModel):
    """Human-readable feedback published after a ledger operation."""
    model_config = ConfigDict(frozen=True)

    kind: MessageKind
    title: str = Field(..., min_length=1)
    description: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
        }

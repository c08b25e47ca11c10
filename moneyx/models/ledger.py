"""
Core Ledger Models for MoneyX

These models define the strict schemas for all entities held in the
ledger store. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Stay immutable once built (changes go through ledger operations)

DESIGN DECISION: Entities are frozen Pydantic models. A change is a new
model built with `merge_fields`, so a half-applied update can never leak
into the store.

DESIGN DECISION: Transactions reference their category by id only.
Readers join the current category at read time (see TransactionView),
so renaming or recolouring a category needs no propagation step.
"""

import calendar
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, TypeVar
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


ModelT = TypeVar("ModelT", bound=BaseModel)


def new_id(prefix: str) -> str:
    """Build a fresh entity id such as `acc-1f3a9c0b2d4e`."""
    return f"{prefix}-{uuid4().hex[:12]}"


def merge_fields(model: ModelT, fields: dict[str, Any]) -> ModelT:
    """
    Return a re-validated copy of `model` with `fields` merged in.

    Unlike `model_copy(update=...)`, every merged value goes through
    the model's validators.

    Raises:
        pydantic.ValidationError: If the merged data is invalid
    """
    data = model.model_dump()
    data.update(fields)
    return type(model).model_validate(data)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Supported account kinds."""
    CHECKING = "Checking"
    SAVINGS = "Savings"
    CREDIT = "Credit"
    INVESTMENT = "Investment"
    CASH = "Cash"
    OTHER = "Other"


class TransactionType(str, Enum):
    """
    How a transaction posts against its account.

    INCOME adds the amount, EXPENSE subtracts its magnitude,
    TRANSFER posts its signed amount as-is (one record per leg).
    """
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class CategoryType(str, Enum):
    """Category kind."""
    INCOME = "income"
    EXPENSE = "expense"


class NotificationType(str, Enum):
    """Notification kind shown in the dashboard bell."""
    BILL = "bill"
    BALANCE = "balance"
    TRANSACTION = "transaction"
    INSIGHT = "insight"


class RecurrenceType(str, Enum):
    """Repeat period for recurring bills."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    QUARTERLY = "quarterly"
    SEMIANNUALLY = "semiannually"
    ANNUALLY = "annually"

    def advance(self, from_date: date) -> date:
        """Return the next occurrence after `from_date`."""
        if self is RecurrenceType.WEEKLY:
            return from_date + timedelta(weeks=1)
        if self is RecurrenceType.BIWEEKLY:
            return from_date + timedelta(weeks=2)
        months = {
            RecurrenceType.MONTHLY: 1,
            RecurrenceType.BIMONTHLY: 2,
            RecurrenceType.QUARTERLY: 3,
            RecurrenceType.SEMIANNUALLY: 6,
            RecurrenceType.ANNUALLY: 12,
        }[self]
        return _add_months(from_date, months)


def _add_months(value: date, months: int) -> date:
    # Clamp to the last day of the target month (Jan 31 + 1 month = Feb 28/29)
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


# =============================================================================
# CORE ENTITIES
# =============================================================================

class Account(BaseModel):
    """
    A money container owned by one user.

    The balance is the single source of truth for funds available.
    It is maintained incrementally by ledger operations and is never
    derived from transaction history. Credit accounts legitimately
    hold negative balances.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: new_id("acc"))
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    type: AccountType
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Signed balance"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user"
    )
    color: Optional[str] = None
    icon: Optional[str] = None


class Category(BaseModel):
    """A spending or income category shared by transactions and bills."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: new_id("cat"))
    name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    type: CategoryType
    color: str = Field(
        default="#64748b",
        pattern=r"^#[0-9a-fA-F]{6}$",
        description="Display colour as #rrggbb"
    )
    icon: Optional[str] = None


class Transaction(BaseModel):
    """
    A single posting against one account.

    A transfer is stored as two Transaction records, one per account,
    linked by `transfer_id`. The outgoing leg carries the fee.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: new_id("trans"))
    date: datetime = Field(
        default_factory=datetime.now,
        description="When the money moved"
    )
    amount: Decimal = Field(
        ...,
        description="Signed amount; expenses are conventionally negative"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=255
    )
    category_id: str = Field(
        ...,
        min_length=1,
        description="Category reference (joined on read)"
    )
    account_id: str = Field(
        ...,
        min_length=1,
        description="Account this transaction posts against"
    )
    type: TransactionType
    is_recurring: bool = False
    tags: list[str] = Field(default_factory=list)

    # Transfer linkage
    counter_account_id: Optional[str] = None
    fee: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Fee destroyed by a transfer (outgoing leg only)"
    )
    transfer_id: Optional[str] = None

    # Set on the expense recorded by funding a savings goal
    goal_id: Optional[str] = None

    @model_validator(mode='after')
    def validate_transfer_fields(self) -> 'Transaction':
        """Counter-account and transfer linkage only make sense on transfers."""
        if self.counter_account_id and self.type != TransactionType.TRANSFER:
            raise ValueError("Only transfers can reference a counter account")
        if self.transfer_id and self.type != TransactionType.TRANSFER:
            raise ValueError("Only transfers can carry a transfer id")
        if self.goal_id and self.type != TransactionType.EXPENSE:
            raise ValueError("Only expenses can fund a savings goal")
        if self.counter_account_id and self.counter_account_id == self.account_id:
            raise ValueError("Counter account must differ from the posting account")
        return self

    def balance_effect(self) -> Decimal:
        """Signed amount this transaction applies to its account balance."""
        if self.type == TransactionType.INCOME:
            return self.amount
        if self.type == TransactionType.EXPENSE:
            return -abs(self.amount)
        return self.amount


class Bill(BaseModel):
    """An upcoming or settled payment obligation."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: new_id("bill"))
    name: str = Field(
        ...,
        min_length=1,
        max_length=255
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount due"
    )
    due_date: date
    is_recurring: bool = False
    recurrence: Optional[RecurrenceType] = None
    category_id: Optional[str] = None
    account_id: Optional[str] = Field(
        default=None,
        description="Intended payment source"
    )
    is_paid: bool = False
    paid_transaction_id: Optional[str] = Field(
        default=None,
        description="Expense transaction created when the bill was paid"
    )

    @model_validator(mode='after')
    def validate_recurrence(self) -> 'Bill':
        if self.recurrence is not None and not self.is_recurring:
            raise ValueError("A recurrence period requires a recurring bill")
        return self

    def next_due_date(self) -> Optional[date]:
        """Due date of the following occurrence, if the bill repeats."""
        if not self.is_recurring or self.recurrence is None:
            return None
        return self.recurrence.advance(self.due_date)


class SavingsGoal(BaseModel):
    """
    A savings target.

    `current_amount` only grows through the fund-goal operation, which
    moves the same amount out of an account.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: new_id("goal"))
    name: str = Field(
        ...,
        min_length=1,
        max_length=255
    )
    target_amount: Decimal = Field(..., ge=0)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0)
    target_date: Optional[date] = None
    color: Optional[str] = None

    @property
    def progress_percent(self) -> float:
        """Progress toward the target; may exceed 100 when over-funded."""
        if self.target_amount == 0:
            return 0.0
        return float(self.current_amount / self.target_amount * 100)


class BudgetCategory(BaseModel):
    """Allocation for one category within a monthly budget."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    category_id: str
    allocated: Decimal = Field(..., ge=0)
    spent: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def remaining(self) -> Decimal:
        return self.allocated - self.spent


class Budget(BaseModel):
    """A monthly budget with per-category allocations."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: new_id("budget"))
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)
    categories: list[BudgetCategory] = Field(default_factory=list)

    @field_validator('categories')
    @classmethod
    def validate_unique_categories(cls, v: list[BudgetCategory]) -> list[BudgetCategory]:
        ids = [line.category_id for line in v]
        if len(ids) != len(set(ids)):
            raise ValueError("A category can only be allocated once per budget")
        return v

    @property
    def total_allocated(self) -> Decimal:
        return sum((line.allocated for line in self.categories), Decimal("0"))

    @property
    def total_spent(self) -> Decimal:
        return sum((line.spent for line in self.categories), Decimal("0"))


class Notification(BaseModel):
    """An informational message for the user. Only its read flag changes."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: new_id("notif"))
    type: NotificationType
    message: str = Field(..., min_length=1)
    read: bool = False
    date: datetime = Field(default_factory=datetime.now)


# =============================================================================
# USER & PREFERENCES
# =============================================================================

class NotificationSettings(BaseModel):
    """Per-topic notification toggles."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    low_balance: bool = True
    bill_reminders: bool = True
    large_transactions: bool = True
    weekly_summary: bool = False
    ai_insights: bool = True


class UserPreferences(BaseModel):
    """Display preferences. One per user."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    currency: str = Field(default="INR", min_length=3, max_length=3)
    date_format: str = "MM/DD/YYYY"
    dark_mode: bool = False
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    def merged(self, updates: dict[str, Any]) -> "UserPreferences":
        """
        Shallow-merge top-level fields; merge `notifications` key-wise.

        A partial notifications update such as {"weekly_summary": True}
        leaves the other toggles untouched.
        """
        data = self.model_dump()
        for key, value in updates.items():
            if key == "notifications":
                if isinstance(value, NotificationSettings):
                    value = value.model_dump(exclude_unset=True)
                if isinstance(value, Mapping):
                    value = {**data["notifications"], **value}
                # Anything else is left for validation to reject
                data["notifications"] = value
            else:
                data[key] = value
        return UserPreferences.model_validate(data)


class User(BaseModel):
    """The signed-in user, as supplied by the session provider."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

"""Models returned by the aggregation engine."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CategorySpending(BaseModel):
    """Expense total for one category in a month."""
    model_config = ConfigDict(frozen=True)

    category_id: str
    name: str
    color: str
    amount: Decimal
    percentage: str  # e.g. "37.5%"


class BudgetLine(BaseModel):
    """Allocated vs. spent for one budgeted category."""
    model_config = ConfigDict(frozen=True)

    category_id: str
    name: str
    allocated: Decimal
    spent: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.allocated - self.spent

    @property
    def is_over(self) -> bool:
        return self.spent > self.allocated


class BudgetUtilization(BaseModel):
    """Live budget usage for a month, computed from transactions."""
    model_config = ConfigDict(frozen=True)

    budget_id: Optional[str]
    month: int
    year: int
    lines: list[BudgetLine]
    total_allocated: Decimal
    total_spent: Decimal

    @property
    def percent_used(self) -> float:
        if self.total_allocated == 0:
            return 0.0
        return float(self.total_spent / self.total_allocated * 100)

    @property
    def overrun(self) -> Decimal:
        return max(self.total_spent - self.total_allocated, Decimal("0"))


class MonthlySummary(BaseModel):
    """Income/expense/net for a month with trends vs. the previous month."""
    model_config = ConfigDict(frozen=True)

    month: int
    year: int
    income: Decimal
    expenses: Decimal
    net_income: Decimal
    previous_income: Decimal
    previous_expenses: Decimal
    previous_net_income: Decimal
    income_change: str
    expenses_change: str
    net_income_change: str


class Insight(BaseModel):
    """A short dashboard hint derived from current data."""
    model_config = ConfigDict(frozen=True)

    type: str  # "alert" or "insight"
    title: str
    description: str

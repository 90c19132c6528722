from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt

# JSON numbers only; strings and booleans are rejected by pydantic
Amount = Union[StrictInt, StrictFloat]


class BudgetIn(BaseModel):
    month: str  # YYYY-MM-01
    category_id: StrictInt
    limit_amount: Amount


class BudgetUpdate(BaseModel):
    limit_amount: Optional[Amount] = None


class BudgetCopyIn(BaseModel):
    from_month: str
    to_month: str


class BudgetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    month: date  # first day of month
    category_id: int
    limit_amount: int
    created_at: datetime
    updated_at: datetime


class BudgetWithActual(BudgetRead):
    actual_spent: int
    remaining: int
    percentage_used: Optional[float]
    category_name: Optional[str] = None

    @classmethod
    def merge(cls, budget: Any, actual_spent: int, category_name: Optional[str] = None) -> "BudgetWithActual":
        """Combine a stored budget with the ledger's spent sum for its month."""
        limit_amount = int(budget.limit_amount)
        actual_spent = int(actual_spent or 0)
        # No meaningful ratio against a zero limit
        percentage_used = round(actual_spent / limit_amount, 4) if limit_amount else None
        return cls(
            id=budget.id,
            month=budget.month,
            category_id=budget.category_id,
            limit_amount=limit_amount,
            created_at=budget.created_at,
            updated_at=budget.updated_at,
            actual_spent=actual_spent,
            remaining=limit_amount - actual_spent,
            percentage_used=percentage_used,
            category_name=category_name,
        )


class Pagination(BaseModel):
    total: int
    count: int


class BudgetList(BaseModel):
    data: List[BudgetRead]
    pagination: Pagination


class BudgetTotal(BaseModel):
    month: date
    total: int

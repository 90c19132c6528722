from __future__ import annotations

from datetime import date
from typing import Any, Dict

from fastapi import HTTPException, status


class BudgetError(Exception):
    """Base class for every failure surfaced by the budget store."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(BudgetError):
    """Malformed or out-of-range input; raised before storage is touched."""

    status_code = status.HTTP_400_BAD_REQUEST


class NoFieldsProvidedError(ValidationError):
    def __init__(self) -> None:
        super().__init__("At least one field must be provided for update")


class MissingMonthError(BudgetError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self) -> None:
        super().__init__("Month is required when includeActual=true")


class NotFoundError(BudgetError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, budget_id: int | None = None) -> None:
        super().__init__("Budget not found")
        self.budget_id = budget_id


class DuplicateBudgetError(BudgetError):
    status_code = status.HTTP_409_CONFLICT
    hint = "Use mode=upsert to update the existing budget"

    def __init__(self, month: date, category_id: int) -> None:
        super().__init__("A budget for this month and category already exists")
        self.month = month
        self.category_id = category_id

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.message, "hint": self.hint}


class InvalidReferenceError(BudgetError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, entity: str, value: Any) -> None:
        super().__init__(f"Invalid {entity}_id: {entity} does not exist")
        self.entity = entity
        self.value = value


class StorageError(BudgetError):
    """Unexpected storage failure. The message never leaks driver details."""

    def __init__(self, message: str = "Storage operation failed") -> None:
        super().__init__(message)


def to_http_exception(exc: BudgetError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())

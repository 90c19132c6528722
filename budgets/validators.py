from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from budgets.errors import ValidationError


_MONTH_RE = re.compile(r"^\d{4}-\d{2}-01$")
# Column ranges: ids are INTEGER, amounts are BIGINT
MAX_ID = 2**31 - 1
MAX_AMOUNT = 2**63 - 1


def parse_month(value: Union[str, date], field: str = "month") -> date:
    """
    Accept a ``YYYY-MM-01`` string or a date and return the first-of-month date.
    Dates that are not on the first of the month are rejected, not truncated.
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        if value.day != 1:
            raise ValidationError(f"{field} must be the first day of a month")
        return value
    if not isinstance(value, str) or not _MONTH_RE.match(value):
        raise ValidationError(f"{field} is required and must be in YYYY-MM-01 format")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{field} is not a valid calendar month") from exc


def validate_id(value: int, field: str = "id") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    if value > MAX_ID:
        raise ValidationError(f"{field} is out of range")
    return value


def validate_limit_amount(value: int, allow_zero: bool = False) -> int:
    # Amounts are whole minor units; callers round before reaching the store
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("limit_amount must be an integer amount")
    if value < 0 or (value == 0 and not allow_zero):
        kind = "non-negative" if allow_zero else "positive"
        raise ValidationError(f"limit_amount must be a {kind} number")
    if value > MAX_AMOUNT:
        raise ValidationError("limit_amount is out of range")
    return value


def round_amount(value: Union[int, float]) -> int:
    """Round half-up to a whole minor unit."""
    if isinstance(value, int):
        return value
    try:
        return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("limit_amount must be a finite number") from exc


def month_range(month: date) -> tuple[date, date]:
    """Return [first day, first day of next month) for the month containing ``month``."""
    start = month.replace(day=1)
    if start.month == 12:
        return start, date(start.year + 1, 1, 1)
    return start, date(start.year, start.month + 1, 1)

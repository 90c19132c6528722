from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from sqlalchemy import Select, and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from budgets.validators import month_range
from db.models import Transaction


EXPENSE = "expense"


class LedgerReaderPg:
    """Read-only aggregation over the transaction ledger. Never writes."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _expenses_in_month(stmt: Select, month: date) -> Select:
        start, end = month_range(month)
        return stmt.where(
            and_(
                Transaction.type == EXPENSE,
                Transaction.date >= start,
                Transaction.date < end,
            )
        )

    async def sum_spent(self, month: date, category_id: int) -> int:
        stmt = select(func.coalesce(func.sum(func.abs(Transaction.amount)), 0))
        stmt = self._expenses_in_month(stmt, month).where(Transaction.category_id == category_id)
        res = await self._session.execute(stmt)
        # SUM(bigint) comes back as numeric on PostgreSQL
        return int(res.scalar_one())

    async def spent_by_category(
        self,
        month: date,
        category_ids: Optional[Iterable[int]] = None,
    ) -> dict[int, int]:
        spent = func.sum(func.abs(Transaction.amount))
        stmt = select(Transaction.category_id, spent).where(Transaction.category_id.is_not(None))
        stmt = self._expenses_in_month(stmt, month)
        if category_ids is not None:
            ids = list(category_ids)
            if not ids:
                return {}
            stmt = stmt.where(Transaction.category_id.in_(ids))
        stmt = stmt.group_by(Transaction.category_id)
        res = await self._session.execute(stmt)
        return {int(category_id): int(total) for category_id, total in res.all()}

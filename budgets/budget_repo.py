from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, List, Optional, Union

from sqlalchemy import Select, delete, func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from budgets.budget_model import BudgetWithActual
from budgets.errors import (
    BudgetError,
    DuplicateBudgetError,
    InvalidReferenceError,
    MissingMonthError,
    NoFieldsProvidedError,
    StorageError,
    ValidationError,
)
from budgets.validators import parse_month, validate_id, validate_limit_amount
from db import constraints
from db.models import Budget, Category
from repositories.ledger_repo_pg import LedgerReaderPg


logger = logging.getLogger(__name__)

MonthLike = Union[str, date]

UNIQUE_MONTH_CATEGORY = "unique_month_category"
# Foreign key constraint name -> referenced entity
_REFERENCES = {"fk_budgets_category_id": "category"}
# Dialects with INSERT .. ON CONFLICT
_UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class BudgetRepositoryPg:
    def __init__(self, session: AsyncSession, ledger: Optional[LedgerReaderPg] = None) -> None:
        self._session = session
        self._ledger = ledger or LedgerReaderPg(session)

    # --- storage guards ---
    @asynccontextmanager
    async def _reading(self, op: str) -> AsyncIterator[None]:
        try:
            yield
        except (SQLAlchemyError, TimeoutError) as exc:
            logger.exception("Budget %s failed", op)
            raise StorageError() from exc

    @asynccontextmanager
    async def _writing(
        self,
        op: str,
        month: Optional[date] = None,
        category_id: Optional[int] = None,
    ) -> AsyncIterator[None]:
        try:
            yield
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise self._translate(exc, month, category_id) from exc
        except (SQLAlchemyError, TimeoutError) as exc:
            await self._session.rollback()
            logger.exception("Budget %s failed", op)
            raise StorageError() from exc

    def _translate(self, exc: IntegrityError, month: Optional[date], category_id: Optional[int]) -> BudgetError:
        violation = constraints.classify_integrity_error(exc)
        if violation.kind == constraints.UNIQUE and violation.constraint in (None, UNIQUE_MONTH_CATEGORY):
            logger.warning("Budget already exists for month=%s category_id=%s", month, category_id)
            return DuplicateBudgetError(month, category_id)
        if violation.kind == constraints.FOREIGN_KEY:
            entity = _REFERENCES.get(violation.constraint or "", "category")
            logger.warning("Budget references missing %s %s", entity, category_id)
            return InvalidReferenceError(entity, category_id)
        if violation.kind == constraints.CHECK:
            return ValidationError("limit_amount must be a non-negative number")
        logger.error("Unclassified integrity error (%s): %s", violation, exc)
        return StorageError()

    def _upsert_insert(self):
        dialect = self._session.get_bind().dialect.name
        try:
            return _UPSERT_INSERTS[dialect]
        except KeyError:
            raise StorageError(f"Upsert is not supported on {dialect}") from None

    @staticmethod
    def _filtered(stmt: Select, month: Optional[date], category_id: Optional[int]) -> Select:
        if month is not None:
            stmt = stmt.where(Budget.month == month)
        if category_id is not None:
            stmt = stmt.where(Budget.category_id == category_id)
        return stmt

    @staticmethod
    def _filter_args(month: Optional[MonthLike], category_id: Optional[int]) -> tuple[Optional[date], Optional[int]]:
        return (
            parse_month(month) if month is not None else None,
            validate_id(category_id, "category_id") if category_id is not None else None,
        )

    # --- writes ---
    async def create(self, month: MonthLike, category_id: int, limit_amount: int) -> Budget:
        """Strict create: fails with DuplicateBudgetError if the month/category pair exists."""
        month = parse_month(month)
        validate_id(category_id, "category_id")
        validate_limit_amount(limit_amount)
        stmt = (
            insert(Budget)
            .values(month=month, category_id=category_id, limit_amount=limit_amount)
            .returning(Budget)
        )
        async with self._writing("create", month, category_id):
            budget = (await self._session.scalars(stmt)).one()
        logger.info("Created budget %s for month=%s category_id=%s", budget.id, month, category_id)
        return budget

    async def upsert(self, month: MonthLike, category_id: int, limit_amount: int) -> Budget:
        """
        Set-or-update the limit for a month/category pair in one statement.
        Concurrent callers for the same key never produce two rows; the last
        writer's limit wins.
        """
        month = parse_month(month)
        validate_id(category_id, "category_id")
        validate_limit_amount(limit_amount)
        dialect_insert = self._upsert_insert()
        stmt = dialect_insert(Budget).values(month=month, category_id=category_id, limit_amount=limit_amount)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Budget.month, Budget.category_id],
            set_={"limit_amount": stmt.excluded.limit_amount, "updated_at": func.now()},
        )
        stmt = stmt.returning(Budget).execution_options(populate_existing=True)
        async with self._writing("upsert", month, category_id):
            budget = (await self._session.scalars(stmt)).one()
        logger.info("Upserted budget %s for month=%s category_id=%s", budget.id, month, category_id)
        return budget

    async def update(self, budget_id: int, limit_amount: Optional[int] = None) -> Optional[Budget]:
        """Only the limit is mutable. Returns None when the budget does not exist."""
        validate_id(budget_id, "budget_id")
        if limit_amount is None:
            raise NoFieldsProvidedError()
        validate_limit_amount(limit_amount, allow_zero=True)
        stmt = (
            update(Budget)
            .where(Budget.id == budget_id)
            .values(limit_amount=limit_amount, updated_at=func.now())
            .returning(Budget)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        async with self._writing("update"):
            budget = (await self._session.scalars(stmt)).first()
        if budget is not None:
            logger.info("Updated budget %s limit_amount=%s", budget_id, limit_amount)
        return budget

    async def delete(self, budget_id: int) -> bool:
        validate_id(budget_id, "budget_id")
        async with self._writing("delete"):
            res = await self._session.execute(delete(Budget).where(Budget.id == budget_id))
        deleted = res.rowcount > 0
        if deleted:
            logger.info("Deleted budget %s", budget_id)
        return deleted

    async def delete_by_month_and_category(self, month: MonthLike, category_id: int) -> bool:
        month = parse_month(month)
        validate_id(category_id, "category_id")
        stmt = delete(Budget).where(Budget.month == month, Budget.category_id == category_id)
        async with self._writing("delete"):
            res = await self._session.execute(stmt)
        return res.rowcount > 0

    async def copy_to_month(self, from_month: MonthLike, to_month: MonthLike) -> List[Budget]:
        """
        Copy every budget of ``from_month`` into ``to_month``, skipping categories
        that already have a budget there. Returns the budgets that were created.
        """
        from_month = parse_month(from_month, "from_month")
        to_month = parse_month(to_month, "to_month")
        if from_month == to_month:
            raise ValidationError("from_month and to_month must differ")
        source = await self.list(month=from_month)
        if not source:
            return []
        dialect_insert = self._upsert_insert()
        stmt = (
            dialect_insert(Budget)
            .values(
                [
                    {"month": to_month, "category_id": b.category_id, "limit_amount": b.limit_amount}
                    for b in source
                ]
            )
            .on_conflict_do_nothing(index_elements=[Budget.month, Budget.category_id])
            .returning(Budget)
        )
        async with self._writing("copy", to_month):
            created = list((await self._session.scalars(stmt)).all())
        logger.info("Copied %d of %d budgets from %s to %s", len(created), len(source), from_month, to_month)
        return sorted(created, key=lambda b: b.category_id)

    # --- reads ---
    async def get(self, budget_id: int) -> Optional[Budget]:
        validate_id(budget_id, "budget_id")
        async with self._reading("get"):
            res = await self._session.execute(select(Budget).where(Budget.id == budget_id))
            return res.scalars().first()

    async def get_by_month_and_category(self, month: MonthLike, category_id: int) -> Optional[Budget]:
        month = parse_month(month)
        validate_id(category_id, "category_id")
        stmt = select(Budget).where(Budget.month == month, Budget.category_id == category_id)
        async with self._reading("get"):
            res = await self._session.execute(stmt)
            return res.scalars().first()

    async def list(self, month: Optional[MonthLike] = None, category_id: Optional[int] = None) -> List[Budget]:
        month, category_id = self._filter_args(month, category_id)
        stmt = self._filtered(select(Budget), month, category_id)
        stmt = stmt.order_by(Budget.month, Budget.category_id)
        async with self._reading("list"):
            res = await self._session.execute(stmt)
            return list(res.scalars().all())

    async def count(self, month: Optional[MonthLike] = None, category_id: Optional[int] = None) -> int:
        month, category_id = self._filter_args(month, category_id)
        stmt = self._filtered(select(func.count(Budget.id)), month, category_id)
        async with self._reading("count"):
            res = await self._session.execute(stmt)
            return int(res.scalar_one())

    async def total_for_month(self, month: MonthLike) -> int:
        month = parse_month(month)
        stmt = select(func.coalesce(func.sum(Budget.limit_amount), 0)).where(Budget.month == month)
        async with self._reading("total"):
            res = await self._session.execute(stmt)
            return int(res.scalar_one())

    async def months(self) -> List[date]:
        stmt = select(Budget.month).distinct().order_by(Budget.month.desc())
        async with self._reading("months"):
            res = await self._session.execute(stmt)
            return list(res.scalars().all())

    # --- reads merged with the ledger ---
    async def get_with_actual(self, budget_id: int) -> Optional[BudgetWithActual]:
        validate_id(budget_id, "budget_id")
        stmt = (
            select(Budget, Category.name)
            .join(Category, Category.id == Budget.category_id)
            .where(Budget.id == budget_id)
        )
        async with self._reading("get_with_actual"):
            row = (await self._session.execute(stmt)).first()
            if row is None:
                return None
            budget, category_name = row
            actual = await self._ledger.sum_spent(budget.month, budget.category_id)
        return BudgetWithActual.merge(budget, actual, category_name)

    async def list_with_actual(
        self,
        month: Optional[MonthLike],
        category_id: Optional[int] = None,
    ) -> List[BudgetWithActual]:
        # Aggregating every month of the ledger is not allowed
        if month is None:
            raise MissingMonthError()
        month, category_id = self._filter_args(month, category_id)
        stmt = self._filtered(
            select(Budget, Category.name).join(Category, Category.id == Budget.category_id),
            month,
            category_id,
        ).order_by(Budget.category_id)
        async with self._reading("list_with_actual"):
            rows = (await self._session.execute(stmt)).all()
            spent = await self._ledger.spent_by_category(month, [budget.category_id for budget, _ in rows])
        return [
            BudgetWithActual.merge(budget, spent.get(budget.category_id, 0), category_name)
            for budget, category_name in rows
        ]

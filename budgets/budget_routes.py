from __future__ import annotations

from typing import List, Literal, Optional, Union

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from budgets.budget_model import (
    BudgetCopyIn,
    BudgetIn,
    BudgetList,
    BudgetRead,
    BudgetTotal,
    BudgetUpdate,
    BudgetWithActual,
    Pagination,
)
from budgets.budget_repo import BudgetRepositoryPg
from budgets.errors import BudgetError, NotFoundError, to_http_exception
from budgets.validators import round_amount
from db.session import get_async_session
from repositories.ledger_repo_pg import LedgerReaderPg


router = APIRouter(prefix="/budgets", tags=["budgets"])


def get_budget_repo(session: AsyncSession = Depends(get_async_session)) -> BudgetRepositoryPg:
    return BudgetRepositoryPg(session, LedgerReaderPg(session))


@router.get("", response_model=Union[BudgetList, List[BudgetWithActual]])
async def list_budgets(
    month: Optional[str] = None,
    category_id: Optional[int] = None,
    include_actual: bool = Query(False, alias="includeActual"),
    repo: BudgetRepositoryPg = Depends(get_budget_repo),
):
    try:
        if include_actual:
            return await repo.list_with_actual(month, category_id)
        budgets = await repo.list(month=month, category_id=category_id)
        total = await repo.count(month=month, category_id=category_id)
    except BudgetError as exc:
        raise to_http_exception(exc) from exc
    return BudgetList(
        data=[BudgetRead.model_validate(b) for b in budgets],
        pagination=Pagination(total=total, count=len(budgets)),
    )


@router.post("", response_model=BudgetRead, status_code=status.HTTP_201_CREATED)
async def create_budget(
    body: BudgetIn,
    mode: Literal["upsert", "create"] = "upsert",
    repo: BudgetRepositoryPg = Depends(get_budget_repo),
):
    try:
        limit_amount = round_amount(body.limit_amount)
        if mode == "upsert":
            return await repo.upsert(body.month, body.category_id, limit_amount)
        return await repo.create(body.month, body.category_id, limit_amount)
    except BudgetError as exc:
        raise to_http_exception(exc) from exc


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget_by_month_and_category(
    month: str,
    category_id: int,
    repo: BudgetRepositoryPg = Depends(get_budget_repo),
) -> None:
    try:
        if not await repo.delete_by_month_and_category(month, category_id):
            raise NotFoundError()
    except BudgetError as exc:
        raise to_http_exception(exc) from exc


@router.get("/months")
async def list_budget_months(repo: BudgetRepositoryPg = Depends(get_budget_repo)) -> List[str]:
    try:
        months = await repo.months()
    except BudgetError as exc:
        raise to_http_exception(exc) from exc
    return [m.isoformat() for m in months]


@router.get("/total", response_model=BudgetTotal)
async def budget_total(month: str, repo: BudgetRepositoryPg = Depends(get_budget_repo)):
    try:
        total = await repo.total_for_month(month)
    except BudgetError as exc:
        raise to_http_exception(exc) from exc
    return {"month": month, "total": total}


@router.post("/copy", response_model=List[BudgetRead], status_code=status.HTTP_201_CREATED)
async def copy_budgets(body: BudgetCopyIn, repo: BudgetRepositoryPg = Depends(get_budget_repo)):
    try:
        return await repo.copy_to_month(body.from_month, body.to_month)
    except BudgetError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{budget_id}", response_model=Union[BudgetWithActual, BudgetRead])
async def get_budget(
    budget_id: int,
    include_actual: bool = Query(False, alias="includeActual"),
    repo: BudgetRepositoryPg = Depends(get_budget_repo),
):
    try:
        if include_actual:
            budget = await repo.get_with_actual(budget_id)
        else:
            budget = await repo.get(budget_id)
        if budget is None:
            raise NotFoundError(budget_id)
    except BudgetError as exc:
        raise to_http_exception(exc) from exc
    if include_actual:
        return budget
    return BudgetRead.model_validate(budget)


@router.put("/{budget_id}", response_model=BudgetRead)
async def update_budget(
    budget_id: int,
    body: BudgetUpdate,
    repo: BudgetRepositoryPg = Depends(get_budget_repo),
):
    try:
        limit_amount = round_amount(body.limit_amount) if body.limit_amount is not None else None
        budget = await repo.update(budget_id, limit_amount=limit_amount)
        if budget is None:
            raise NotFoundError(budget_id)
    except BudgetError as exc:
        raise to_http_exception(exc) from exc
    return budget


@router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget(budget_id: int, repo: BudgetRepositoryPg = Depends(get_budget_repo)) -> None:
    try:
        if not await repo.delete(budget_id):
            raise NotFoundError(budget_id)
    except BudgetError as exc:
        raise to_http_exception(exc) from exc

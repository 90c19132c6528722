import os
from datetime import date
from typing import Optional

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Keep the module-level app from pointing at a real server during tests
os.environ.setdefault("DATABASE_DSN", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from budgets.budget_repo import BudgetRepositoryPg  # noqa: E402
from db.models import Category, Transaction, Wallet  # noqa: E402
from db.session import Database  # noqa: E402
from repositories.ledger_repo_pg import LedgerReaderPg  # noqa: E402


CATEGORIES = [
    (1, "Food", "expense"),
    (2, "Transport", "expense"),
    (3, "Entertainment", "expense"),
    (4, "Salary", "income"),
    (5, "Groceries", "expense"),
    (7, "Utilities", "expense"),
]


# --- Test utilities: throwaway SQLite database per test ---
@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'pocketbook.db'}")
    await db.connect()
    await db.create_all()
    async with db.session() as session:
        session.add(Wallet(id=1, name="Cash"))
        session.add_all([Category(id=i, name=name, type=kind) for i, name, kind in CATEGORIES])
        await session.commit()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as session:
        yield session


@pytest_asyncio.fixture
async def repo(session):
    return BudgetRepositoryPg(session, LedgerReaderPg(session))


@pytest_asyncio.fixture
async def ledger(session):
    return LedgerReaderPg(session)


@pytest_asyncio.fixture
async def record_transaction(database):
    """Stand-in for the ledger subsystem: writes transactions in their own session."""

    async def _record(
        amount: int,
        on: date,
        category_id: Optional[int],
        type: str = "expense",
    ) -> None:
        async with database.session() as s:
            s.add(Transaction(type=type, amount=amount, date=on, wallet_id=1, category_id=category_id))
            await s.commit()

    return _record


@pytest_asyncio.fixture
async def client(database):
    from main import get_app

    app = get_app(database)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

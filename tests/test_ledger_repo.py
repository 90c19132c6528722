from datetime import date

import pytest

from repositories.ledger_repo_pg import LedgerReaderPg


@pytest.mark.asyncio
async def test_sum_spent_is_zero_without_transactions(ledger: LedgerReaderPg):
    assert await ledger.sum_spent(date(2024, 3, 1), 1) == 0


@pytest.mark.asyncio
async def test_sum_spent_uses_calendar_month(ledger: LedgerReaderPg, record_transaction):
    await record_transaction(1_000, date(2024, 3, 1), 1)
    await record_transaction(2_000, date(2024, 3, 31), 1)
    await record_transaction(4_000, date(2024, 4, 1), 1)
    await record_transaction(8_000, date(2024, 2, 29), 1)

    assert await ledger.sum_spent(date(2024, 3, 1), 1) == 3_000
    # any day of the month resolves to the same calendar month
    assert await ledger.sum_spent(date(2024, 3, 17), 1) == 3_000


@pytest.mark.asyncio
async def test_sum_spent_december_rolls_into_next_year(ledger: LedgerReaderPg, record_transaction):
    await record_transaction(500, date(2023, 12, 31), 2)
    await record_transaction(700, date(2024, 1, 1), 2)

    assert await ledger.sum_spent(date(2023, 12, 1), 2) == 500
    assert await ledger.sum_spent(date(2024, 1, 1), 2) == 700


@pytest.mark.asyncio
async def test_sum_spent_only_counts_expenses_of_category(ledger: LedgerReaderPg, record_transaction):
    await record_transaction(-1_500, date(2024, 3, 3), 1)
    await record_transaction(9_000, date(2024, 3, 3), 1, type="income")
    await record_transaction(6_000, date(2024, 3, 3), 1, type="transfer")
    await record_transaction(2_500, date(2024, 3, 3), 2)
    await record_transaction(3_000, date(2024, 3, 3), None)

    assert await ledger.sum_spent(date(2024, 3, 1), 1) == 1_500


@pytest.mark.asyncio
async def test_spent_by_category(ledger: LedgerReaderPg, record_transaction):
    await record_transaction(100, date(2024, 3, 2), 1)
    await record_transaction(200, date(2024, 3, 4), 1)
    await record_transaction(50, date(2024, 3, 4), 2)
    await record_transaction(75, date(2024, 3, 4), 3)
    await record_transaction(999, date(2024, 3, 4), None)

    month = date(2024, 3, 1)
    assert await ledger.spent_by_category(month) == {1: 300, 2: 50, 3: 75}
    assert await ledger.spent_by_category(month, [1, 5]) == {1: 300}
    assert await ledger.spent_by_category(month, []) == {}

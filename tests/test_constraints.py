import sqlite3

from sqlalchemy.exc import IntegrityError

from db import constraints


class FakeAsyncpgError(Exception):
    def __init__(self, sqlstate: str, constraint_name: str) -> None:
        super().__init__("boom")
        self.sqlstate = sqlstate
        self.constraint_name = constraint_name


class FakeAdaptedError(Exception):
    """Mimics the SQLAlchemy asyncpg adapter: sqlstate copied, driver error chained."""

    def __init__(self, cause: FakeAsyncpgError) -> None:
        super().__init__("wrapped")
        self.sqlstate = cause.sqlstate
        self.__cause__ = cause


class FakeSqliteError(Exception):
    def __init__(self, code: int) -> None:
        super().__init__("boom")
        self.sqlite_errorcode = code


def _integrity(orig: Exception) -> IntegrityError:
    return IntegrityError("INSERT INTO budgets ...", {}, orig)


def test_postgres_unique_violation_with_constraint_name():
    orig = FakeAdaptedError(FakeAsyncpgError("23505", "unique_month_category"))
    violation = constraints.classify_integrity_error(_integrity(orig))
    assert violation == constraints.ConstraintViolation(constraints.UNIQUE, "unique_month_category")


def test_postgres_foreign_key_violation():
    orig = FakeAdaptedError(FakeAsyncpgError("23503", "fk_budgets_category_id"))
    violation = constraints.classify_integrity_error(_integrity(orig))
    assert violation.kind == constraints.FOREIGN_KEY
    assert violation.constraint == "fk_budgets_category_id"


def test_postgres_unknown_sqlstate():
    orig = FakeAdaptedError(FakeAsyncpgError("23P01", "exclusion"))
    assert constraints.classify_integrity_error(_integrity(orig)).kind is None


def test_sqlite_result_codes():
    cases = {
        sqlite3.SQLITE_CONSTRAINT_UNIQUE: constraints.UNIQUE,
        sqlite3.SQLITE_CONSTRAINT_FOREIGNKEY: constraints.FOREIGN_KEY,
        sqlite3.SQLITE_CONSTRAINT_CHECK: constraints.CHECK,
        sqlite3.SQLITE_CONSTRAINT_NOTNULL: constraints.NOT_NULL,
    }
    for code, kind in cases.items():
        violation = constraints.classify_integrity_error(_integrity(FakeSqliteError(code)))
        assert violation.kind == kind
        assert violation.constraint is None


def test_message_text_is_ignored():
    # A message that looks like a constraint failure is not enough on its own
    orig = Exception("UNIQUE constraint failed: budgets.month, budgets.category_id")
    assert constraints.classify_integrity_error(_integrity(orig)).kind is None

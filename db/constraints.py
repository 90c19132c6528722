from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError


UNIQUE = "unique"
FOREIGN_KEY = "foreign_key"
CHECK = "check"
NOT_NULL = "not_null"

# PostgreSQL SQLSTATE class 23 (integrity constraint violation)
_PG_SQLSTATE = {
    "23505": UNIQUE,
    "23503": FOREIGN_KEY,
    "23514": CHECK,
    "23502": NOT_NULL,
}

# SQLite extended result codes
_SQLITE_CODES = {
    sqlite3.SQLITE_CONSTRAINT_UNIQUE: UNIQUE,
    sqlite3.SQLITE_CONSTRAINT_PRIMARYKEY: UNIQUE,
    sqlite3.SQLITE_CONSTRAINT_FOREIGNKEY: FOREIGN_KEY,
    sqlite3.SQLITE_CONSTRAINT_CHECK: CHECK,
    sqlite3.SQLITE_CONSTRAINT_NOTNULL: NOT_NULL,
}


@dataclass(frozen=True)
class ConstraintViolation:
    kind: Optional[str]
    # Only PostgreSQL drivers report the constraint name
    constraint: Optional[str] = None


def _sqlstate(orig: Any) -> Optional[str]:
    # asyncpg adapter exposes sqlstate/pgcode, psycopg exposes sqlstate
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def _constraint_name(orig: Any) -> Optional[str]:
    diag = getattr(orig, "diag", None)
    if diag is not None and getattr(diag, "constraint_name", None):
        return diag.constraint_name
    cause = getattr(orig, "__cause__", None)
    return getattr(cause, "constraint_name", None)


def classify_integrity_error(exc: IntegrityError) -> ConstraintViolation:
    """
    Map a driver-level integrity error to a structured violation using
    SQLSTATE (PostgreSQL) or extended result codes (SQLite).
    """
    orig = exc.orig
    sqlstate = _sqlstate(orig)
    if sqlstate is not None:
        return ConstraintViolation(kind=_PG_SQLSTATE.get(sqlstate), constraint=_constraint_name(orig))
    errorcode = getattr(orig, "sqlite_errorcode", None)
    if errorcode is not None:
        return ConstraintViolation(kind=_SQLITE_CODES.get(errorcode))
    return ConstraintViolation(kind=None)

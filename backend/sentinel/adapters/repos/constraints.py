# sentinel/adapters/repos/constraints.py
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

PG_UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError, column_hint: str | None = None) -> bool:
    """
    True when the store rejected a row because of a unique key.

    SQLite:   "UNIQUE constraint failed: distress_events.fingerprint"
    Postgres: SQLSTATE 23505 "duplicate key value violates unique constraint ..."
    """
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    msg = str(orig).lower()
    unique = code == PG_UNIQUE_VIOLATION or "unique constraint" in msg
    if not unique:
        return False
    return column_hint is None or column_hint.lower() in msg

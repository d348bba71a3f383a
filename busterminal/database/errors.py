"""
Interpretation of driver integrity errors.

Drivers report uniqueness violations differently: PostgreSQL names the
violated constraint, SQLite lists the constrained columns. Both forms are
accepted here so services can tell an expected conflict from a real failure.
"""

import logging
from contextlib import contextmanager
from typing import Sequence
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)

# SQLSTATE codes for unique violations (PostgreSQL 23505, generic 23000)
_UNIQUE_SQLSTATES = {"23505", "23000"}


def is_unique_violation(error: IntegrityError, constraint_name: str, table: str, columns: Sequence[str]) -> bool:
    """
    Return True when the error is a uniqueness violation of the given constraint.

    Args:
        error: IntegrityError raised on flush/commit
        constraint_name: Name of the unique constraint or index
        table: Table the constraint belongs to
        columns: Constrained columns, as listed by SQLite
    """
    message = str(error.orig).lower() if error.orig is not None else str(error).lower()

    if constraint_name.lower() in message:
        return True

    sqlstate = getattr(error.orig, "pgcode", None) or getattr(error.orig, "sqlstate", None)
    if sqlstate and sqlstate not in _UNIQUE_SQLSTATES:
        return False

    # SQLite: "UNIQUE constraint failed: tickets.flight_id, tickets.seat_number"
    if "unique constraint failed" in message:
        return all(f"{table}.{column}".lower() in message for column in columns)

    return False


@contextmanager
def translate_errors(action: str):
    """
    Re-raise storage failures as PersistenceError carrying the cause.

    Usage:
        with translate_errors("load stop 5"):
            ...
    """
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Failed to {action}: {e}")
        raise PersistenceError(f"Failed to {action}: {e}") from e

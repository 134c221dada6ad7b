"""
Database helpers shared by the car stats services.

The summary maintainers issue set-based SQL (upserts, conditional updates,
aggregate INSERT ... SELECT) instead of loading ORM objects, so every counter
change happens inside a single statement on the database side.

Usage
-----
::

    from utils.db_helpers import dialect_insert, raise_to, lower_to, month_window

    stmt = dialect_insert(CarTotalSummary.__table__).values(...).on_conflict_do_update(
        index_elements=['vehicle_id', 'home_currency'],
        set_={'last_record_at': raise_to(table.c.last_record_at, when_done)},
    )
    db.session.execute(stmt)
"""
from datetime import datetime

from dateutil.relativedelta import relativedelta
from sqlalchemy import case, literal
from sqlalchemy.dialects import postgresql, sqlite

from extensions import db


# ---------------------------------------------------------------------------
# Upserts
# ---------------------------------------------------------------------------

def dialect_insert(table):
    """Return an INSERT construct that supports ``on_conflict_do_update``.

    Only PostgreSQL and SQLite are supported.  Both implement
    ``INSERT ... ON CONFLICT``, which the summary maintainers and the full
    recalculation rely on.  Any other backend raises NotImplementedError.
    """
    dialect_name = db.session.get_bind().dialect.name
    if dialect_name == 'postgresql':
        return postgresql.insert(table)
    if dialect_name == 'sqlite':
        return sqlite.insert(table)
    raise NotImplementedError(f"Upserts are not supported on the '{dialect_name}' dialect")


# ---------------------------------------------------------------------------
# Monotonic comparison updates
# ---------------------------------------------------------------------------

def raise_to(column, value):
    """SQL for ``max(column, value)`` where a NULL column counts as unset."""
    bound = literal(value, column.type)
    return case(
        (column.is_(None), bound),
        (column < bound, bound),
        else_=column,
    )


def lower_to(column, value):
    """SQL for ``min(column, value)`` where a NULL column counts as unset."""
    bound = literal(value, column.type)
    return case(
        (column.is_(None), bound),
        (column > bound, bound),
        else_=column,
    )


def positive_difference(minuend, subtrahend):
    """SQL for ``max(minuend - subtrahend, 0)``."""
    return case(
        (minuend > subtrahend, minuend - subtrahend),
        else_=0,
    )


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------

def month_window(year, month):
    """Half-open ``[start, end)`` datetime range covering one calendar month."""
    start = datetime(year, month, 1)
    return start, start + relativedelta(months=1)

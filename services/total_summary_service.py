"""
Total Summary Service
=====================
Maintains car_total_summaries: one row per (vehicle, home currency) with
all-time counters, sums, date range and "latest X" identifiers.

Every change is a single set-based statement.  Creates upsert the row and add
the record's contribution; removals and value edits are update-only, because a
row that does not exist has nothing to subtract from.

Date range and latest ids
-------------------------
Creates move first_record_at / last_record_at monotonically.  Removals and
date edits cannot, so recalculate_min_max() recomputes them from the remaining
active records, or resets the row when none remain.

Mileage
-------
latest_known_mileage is vehicle-wide: the highest odometer over every active
record (any currency) and every non-removed travel.  It is written to each
live currency row (first_record_at set); a row without records holds 0.
"""
import logging
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, select, update

from extensions import db
from models.car_summaries import CarTotalSummary
from models.records import ExpenseBase, RECORD_STATUS_ACTIVE
from models.travels import Travel
from services.stats_deltas import (
    LATEST_ID_COLUMNS, TOTAL_COLUMNS, record_contributions, removal_contributions,
)
from utils.db_helpers import dialect_insert, lower_to, raise_to

logger = logging.getLogger(__name__)


def active_record_filters(vehicle_id, home_currency):
    """WHERE clauses for active records of one vehicle/currency.

    Arguments may be plain values or column expressions (for correlated
    subqueries in full recalculation).
    """
    return (
        ExpenseBase.vehicle_id == vehicle_id,
        ExpenseBase.home_currency == home_currency,
        ExpenseBase.status == RECORD_STATUS_ACTIVE,
        ExpenseBase.removed_at.is_(None),
    )


def latest_record_id_query(record_type, vehicle_id, home_currency):
    """Scalar subquery: id of the most recent active record of a type."""
    return (
        select(ExpenseBase.id)
        .where(*active_record_filters(vehicle_id, home_currency), ExpenseBase.record_type == record_type)
        .order_by(ExpenseBase.when_done.desc(), ExpenseBase.id.desc())
        .limit(1)
        .scalar_subquery()
    )


class TotalSummaryService:
    """Delta maintenance of the all-time summary row."""

    table = CarTotalSummary.__table__

    @staticmethod
    def _row_filters(vehicle_id, home_currency):
        t = TotalSummaryService.table
        return (t.c.vehicle_id == vehicle_id, t.c.home_currency == home_currency)

    @staticmethod
    def _lock_query(vehicle_id):
        t = TotalSummaryService.table
        query = (
            select(t.c.home_currency, t.c.first_record_at)
            .where(t.c.vehicle_id == vehicle_id)
            .order_by(t.c.home_currency)
        )
        if current_app.config.get('STATS_LOCK_SUMMARY_ROWS', True):
            query = query.with_for_update()
        return query

    @staticmethod
    def lock_summary(vehicle_id, home_currency=None):
        """
        Lock every total row of the vehicle (SELECT ... FOR UPDATE, ordered by
        currency so concurrent writers queue instead of deadlocking).

        Vehicle-wide columns (mileage, travels) touch all currency rows, so the
        whole vehicle is locked rather than one currency.

        Returns:
            True when the home_currency row exists and has active records.
        """
        rows = db.session.execute(TotalSummaryService._lock_query(vehicle_id)).all()
        return any(row.home_currency == home_currency and row.first_record_at is not None for row in rows)

    # ------------------------------------------------------------------
    # Deltas
    # ------------------------------------------------------------------

    @staticmethod
    def apply_create_delta(params):
        """Upsert the row and add one record's contribution."""
        t = TotalSummaryService.table
        now = datetime.utcnow()
        when = params['when_done']

        values = {
            'vehicle_id': params['vehicle_id'],
            'home_currency': params['home_currency'],
            'first_record_at': when,
            'last_record_at': when,
            'latest_known_mileage': params['odometer'] or Decimal('0'),
            'updated_at': now,
        }
        set_ = {
            'first_record_at': lower_to(t.c.first_record_at, when),
            'last_record_at': raise_to(t.c.last_record_at, when),
            'updated_at': now,
        }
        for column, value in record_contributions(params).items():
            if value is None:
                continue
            total_column = TOTAL_COLUMNS[column]
            values[total_column] = value
            set_[total_column] = t.c[total_column] + value

        latest_column = LATEST_ID_COLUMNS.get(params['record_type'])
        if latest_column:
            values[latest_column] = params['record_id']
            set_[latest_column] = latest_record_id_query(
                params['record_type'], params['vehicle_id'], params['home_currency'])

        stmt = dialect_insert(t).values(**values).on_conflict_do_update(
            index_elements=['vehicle_id', 'home_currency'],
            set_=set_,
        )
        db.session.execute(stmt)

    @staticmethod
    def apply_remove_delta(params):
        """Subtract one record's contribution (update-only)."""
        deltas = {column: value for column, value in removal_contributions(params).items() if value is not None}
        affected = TotalSummaryService._apply_deltas(params['vehicle_id'], params['home_currency'], deltas)
        if affected == 0:
            logger.warning(
                f"vehicle {params['vehicle_id']} {params['home_currency']}: no total summary to remove "
                f"record {params['record_id']} from, summaries need a recalculation"
            )

    @staticmethod
    def apply_value_delta(vehicle_id, home_currency, deltas):
        """Add per-column amount deltas (monthly column names) to the row."""
        if not deltas:
            return 0
        return TotalSummaryService._apply_deltas(vehicle_id, home_currency, deltas)

    @staticmethod
    def _apply_deltas(vehicle_id, home_currency, deltas):
        t = TotalSummaryService.table
        values = {TOTAL_COLUMNS[column]: t.c[TOTAL_COLUMNS[column]] + value for column, value in deltas.items()}
        values['updated_at'] = datetime.utcnow()
        result = db.session.execute(
            update(t).where(*TotalSummaryService._row_filters(vehicle_id, home_currency)).values(**values)
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Recomputed columns
    # ------------------------------------------------------------------

    @staticmethod
    def extremal_values(vehicle_id, home_currency):
        """Column -> scalar subquery for the date range and latest ids."""
        filters = active_record_filters(vehicle_id, home_currency)
        values = {
            'first_record_at': select(func.min(ExpenseBase.when_done)).where(*filters).scalar_subquery(),
            'last_record_at': select(func.max(ExpenseBase.when_done)).where(*filters).scalar_subquery(),
        }
        for record_type, column in LATEST_ID_COLUMNS.items():
            values[column] = latest_record_id_query(record_type, vehicle_id, home_currency)
        return values

    @staticmethod
    def recalculate_min_max(vehicle_id, home_currency):
        """
        Recompute the date range and latest ids from the remaining records.

        Returns:
            False when the currency has no active records left (row reset).
        """
        t = TotalSummaryService.table
        remaining = db.session.execute(
            select(func.count(ExpenseBase.id)).where(*active_record_filters(vehicle_id, home_currency))
        ).scalar()

        if remaining == 0:
            values = {column: None for column in LATEST_ID_COLUMNS.values()}
            values.update(first_record_at=None, last_record_at=None, latest_known_mileage=0)
        else:
            values = TotalSummaryService.extremal_values(vehicle_id, home_currency)
        values['updated_at'] = datetime.utcnow()

        db.session.execute(
            update(t).where(*TotalSummaryService._row_filters(vehicle_id, home_currency)).values(**values)
        )
        return remaining > 0

    @staticmethod
    def vehicle_max_odometer(vehicle_id):
        """Highest odometer over active records and non-removed travels, or 0."""
        records_max = db.session.execute(
            select(func.max(ExpenseBase.odometer)).where(
                ExpenseBase.vehicle_id == vehicle_id,
                ExpenseBase.status == RECORD_STATUS_ACTIVE,
                ExpenseBase.removed_at.is_(None),
            )
        ).scalar()
        travels_max = db.session.execute(
            select(func.max(func.coalesce(Travel.last_odometer, Travel.first_odometer))).where(
                Travel.vehicle_id == vehicle_id,
                Travel.removed_at.is_(None),
            )
        ).scalar()
        readings = [Decimal(str(value)) for value in (records_max, travels_max) if value is not None]
        return max(readings, default=Decimal('0'))

    @staticmethod
    def refresh_latest_known_mileage(vehicle_id):
        """Recompute mileage for every currency row of the vehicle."""
        t = TotalSummaryService.table
        mileage = TotalSummaryService.vehicle_max_odometer(vehicle_id)
        db.session.execute(
            update(t).where(t.c.vehicle_id == vehicle_id, t.c.first_record_at.isnot(None))
            .values(latest_known_mileage=mileage)
        )
        db.session.execute(
            update(t).where(t.c.vehicle_id == vehicle_id, t.c.first_record_at.is_(None))
            .values(latest_known_mileage=0)
        )
        return mileage

    @staticmethod
    def raise_latest_known_mileage(vehicle_id, odometer):
        """
        Monotonic mileage update for a new reading on every live row.

        Returns:
            True when at least one row moved.
        """
        if odometer is None:
            return False
        t = TotalSummaryService.table
        result = db.session.execute(
            update(t).where(
                t.c.vehicle_id == vehicle_id,
                t.c.first_record_at.isnot(None),
                t.c.latest_known_mileage < odometer,
            ).values(latest_known_mileage=odometer)
        )
        return result.rowcount > 0

    @staticmethod
    def vehicle_currencies(vehicle_id):
        t = TotalSummaryService.table
        return db.session.execute(
            select(t.c.home_currency).where(t.c.vehicle_id == vehicle_id).order_by(t.c.home_currency)
        ).scalars().all()


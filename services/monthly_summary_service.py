"""
Monthly Summary Service
=======================
Maintains car_monthly_summaries: one row per (vehicle, home currency,
calendar month) with the same counters and sums as the total row, plus the
month's odometer window (start_mileage / end_mileage).

Months are taken from the record's when_done in UTC.  As with the total row,
creates upsert and everything else is update-only.
"""
import logging
from datetime import datetime

from sqlalchemy import func, select, update

from extensions import db
from models.car_summaries import CarMonthlySummary
from models.records import ExpenseBase
from services.stats_deltas import record_contributions, removal_contributions, year_month
from services.total_summary_service import active_record_filters
from utils.db_helpers import dialect_insert, lower_to, month_window, raise_to

logger = logging.getLogger(__name__)


class MonthlySummaryService:
    """Delta maintenance of per-month summary rows."""

    table = CarMonthlySummary.__table__

    @staticmethod
    def _row_filters(vehicle_id, home_currency, year, month):
        t = MonthlySummaryService.table
        return (
            t.c.vehicle_id == vehicle_id,
            t.c.home_currency == home_currency,
            t.c.year == year,
            t.c.month == month,
        )

    @staticmethod
    def get_summary_id(vehicle_id, home_currency, year, month):
        t = MonthlySummaryService.table
        return db.session.execute(
            select(t.c.id).where(*MonthlySummaryService._row_filters(vehicle_id, home_currency, year, month))
        ).scalar()

    @staticmethod
    def apply_create_delta(params):
        """
        Upsert the record's month row and add its contribution.

        Returns:
            id of the monthly summary row (for the per-kind breakdowns).
        """
        t = MonthlySummaryService.table
        now = datetime.utcnow()
        when = params['when_done']
        odometer = params['odometer']
        year, month = year_month(when)

        values = {
            'vehicle_id': params['vehicle_id'],
            'home_currency': params['home_currency'],
            'year': year,
            'month': month,
            'start_mileage': odometer,
            'end_mileage': odometer,
            'first_record_at': when,
            'last_record_at': when,
            'updated_at': now,
        }
        set_ = {
            'first_record_at': lower_to(t.c.first_record_at, when),
            'last_record_at': raise_to(t.c.last_record_at, when),
            'updated_at': now,
        }
        if odometer is not None:
            set_['start_mileage'] = lower_to(t.c.start_mileage, odometer)
            set_['end_mileage'] = raise_to(t.c.end_mileage, odometer)

        for column, value in record_contributions(params).items():
            if value is None:
                continue
            values[column] = value
            set_[column] = t.c[column] + value
        # Consumption is reconciled afterwards for refuels
        if params['volume'] is not None:
            values['consumption_volume'] = params['volume']

        stmt = (
            dialect_insert(t).values(**values)
            .on_conflict_do_update(index_elements=['vehicle_id', 'home_currency', 'year', 'month'], set_=set_)
            .returning(t.c.id)
        )
        return db.session.execute(stmt).scalar()

    @staticmethod
    def apply_remove_delta(params):
        """
        Subtract the record's contribution from its month row.

        Returns:
            id of the month row, or None when it does not exist.
        """
        year, month = year_month(params['when_done'])
        summary_id = MonthlySummaryService.get_summary_id(params['vehicle_id'], params['home_currency'], year, month)
        if summary_id is None:
            logger.warning(
                f"vehicle {params['vehicle_id']} {params['home_currency']} {year}-{month:02d}: "
                f"no monthly summary to remove record {params['record_id']} from"
            )
            return None

        deltas = {column: value for column, value in removal_contributions(params).items() if value is not None}
        MonthlySummaryService._apply_deltas(summary_id, deltas)
        return summary_id

    @staticmethod
    def apply_value_delta(vehicle_id, home_currency, year, month, deltas):
        summary_id = MonthlySummaryService.get_summary_id(vehicle_id, home_currency, year, month)
        if summary_id is not None and deltas:
            MonthlySummaryService._apply_deltas(summary_id, deltas)
        return summary_id

    @staticmethod
    def _apply_deltas(summary_id, deltas):
        t = MonthlySummaryService.table
        values = {column: t.c[column] + value for column, value in deltas.items()}
        values['updated_at'] = datetime.utcnow()
        db.session.execute(update(t).where(t.c.id == summary_id).values(**values))

    @staticmethod
    def recalculate_min_max(vehicle_id, home_currency, year, month):
        """Recompute the odometer window and date range of one month from its records."""
        t = MonthlySummaryService.table
        start, end = month_window(year, month)
        filters = (
            *active_record_filters(vehicle_id, home_currency),
            ExpenseBase.when_done >= start,
            ExpenseBase.when_done < end,
        )
        row = db.session.execute(
            select(
                func.count(ExpenseBase.id).label('records'),
                func.min(ExpenseBase.odometer).label('start_mileage'),
                func.max(ExpenseBase.odometer).label('end_mileage'),
                func.min(ExpenseBase.when_done).label('first_record_at'),
                func.max(ExpenseBase.when_done).label('last_record_at'),
            ).where(*filters)
        ).one()

        if row.records:
            values = {
                'start_mileage': row.start_mileage,
                'end_mileage': row.end_mileage,
                'first_record_at': row.first_record_at,
                'last_record_at': row.last_record_at,
            }
        else:
            values = {'start_mileage': None, 'end_mileage': None, 'first_record_at': None, 'last_record_at': None}
        values['updated_at'] = datetime.utcnow()

        db.session.execute(
            update(t).where(*MonthlySummaryService._row_filters(vehicle_id, home_currency, year, month)).values(**values)
        )

"""
Kind Breakdown Service
======================
Per-kind record count and amount for expenses and revenues, all-time
(car_total_expenses / car_total_revenues) and per month
(car_monthly_expenses / car_monthly_revenues, keyed by the monthly summary id).

A positive count delta upserts; anything else is update-only.  Breakdown rows
are never deleted by delta maintenance: a kind whose last record goes away
keeps a row with records_count 0.
"""
from sqlalchemy import update

from extensions import db
from models.car_breakdowns import CarMonthlyExpense, CarMonthlyRevenue, CarTotalExpense, CarTotalRevenue
from models.records import RecordType
from services.stats_deltas import is_zero_or_none
from utils.db_helpers import dialect_insert

BREAKDOWN_MODELS = {
    RecordType.EXPENSE: (CarTotalExpense, CarMonthlyExpense),
    RecordType.REVENUE: (CarTotalRevenue, CarMonthlyRevenue),
}


class KindBreakdownService:

    @staticmethod
    def apply_delta(model, key, count_delta, amount_delta):
        """
        Add count_delta / amount_delta to the breakdown row identified by key.

        Args:
            model:        Breakdown model class.
            key:          Primary key column -> value.
            count_delta:  Change in records_count (may be 0 or None).
            amount_delta: Change in amount, None for "unchanged".
        """
        count_delta = count_delta or 0
        if count_delta == 0 and is_zero_or_none(amount_delta):
            return

        t = model.__table__
        if count_delta > 0:
            set_ = {'records_count': t.c.records_count + count_delta}
            if amount_delta is not None:
                set_['amount'] = t.c.amount + amount_delta
            stmt = dialect_insert(t).values(
                **key, records_count=count_delta, amount=amount_delta or 0,
            ).on_conflict_do_update(index_elements=list(key), set_=set_)
        else:
            values = {}
            if count_delta:
                values['records_count'] = t.c.records_count + count_delta
            if not is_zero_or_none(amount_delta):
                values['amount'] = t.c.amount + amount_delta
            stmt = update(t).where(*[t.c[column] == value for column, value in key.items()]).values(**values)
        db.session.execute(stmt)

    @staticmethod
    def apply_record_delta(params, monthly_summary_id, count_delta, amount_delta):
        """Route a record's delta to the all-time and monthly rows of its kind."""
        models = BREAKDOWN_MODELS.get(params['record_type'])
        if models is None or params['kind_id'] is None:
            return
        total_model, monthly_model = models

        KindBreakdownService.apply_delta(
            total_model,
            {'vehicle_id': params['vehicle_id'], 'home_currency': params['home_currency'], 'kind_id': params['kind_id']},
            count_delta,
            amount_delta,
        )
        if monthly_summary_id is not None:
            KindBreakdownService.apply_delta(
                monthly_model,
                {'monthly_summary_id': monthly_summary_id, 'kind_id': params['kind_id']},
                count_delta,
                amount_delta,
            )

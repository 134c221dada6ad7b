"""
Record Service
==============
Create, edit and remove transactional records (refuels, expenses, revenues,
checkpoints, travel points) and keep the car summaries in step.

Each operation persists the change, hands the before/after event to
CarStatsService inside the same transaction, then commits.  On any error the
session is rolled back and the exception re-raised, so neither the record nor
the summaries change.

Pass commit=False to batch several operations in one transaction; the caller
then owns commit/rollback.
"""
import logging
from datetime import datetime

from extensions import db
from models.categories import ExpenseKind
from models.records import ExpenseBase, Expense, RecordType, Refuel, Revenue
from services.car_stats_service import CarStatsService
from services.stats_deltas import record_params_from_model, to_decimal, to_utc_naive

logger = logging.getLogger(__name__)

BASE_FIELDS = ('vehicle_id', 'home_currency', 'when_done', 'odometer', 'total_price',
               'total_price_hc', 'fees_hc', 'tax_hc')


class RecordService:

    @staticmethod
    def _finish(commit):
        if commit:
            db.session.commit()

    @staticmethod
    def create_record(vehicle_id, record_type, home_currency, when_done, odometer=None,
                      total_price=None, total_price_hc=None, fees_hc=None, tax_hc=None,
                      volume=None, kind_id=None, amount=None, commit=True):
        """
        Create an active record of any type.

        Args:
            record_type:    RecordType value.
            home_currency:  ISO 4217 code of the user's home currency.
            when_done:      datetime (or ISO string); stored as naive UTC.
            total_price_hc: Amount in home currency, None while unconverted.
            volume:         Litres (refuels).
            kind_id:        ExpenseKind / RevenueKind id (expenses, revenues).

        Returns:
            The new ExpenseBase.
        """
        if record_type not in RecordType.ALL:
            raise ValueError(f"Unknown record type: {record_type!r}")

        record = ExpenseBase(
            vehicle_id=vehicle_id,
            record_type=record_type,
            home_currency=home_currency.upper(),
            when_done=to_utc_naive(when_done),
            odometer=to_decimal(odometer),
            total_price=to_decimal(total_price),
            total_price_hc=to_decimal(total_price_hc),
            fees_hc=to_decimal(fees_hc),
            tax_hc=to_decimal(tax_hc),
        )
        if record_type == RecordType.REFUEL:
            record.refuel = Refuel(volume=to_decimal(volume))
        elif record_type == RecordType.EXPENSE:
            record.expense = Expense(kind_id=kind_id, is_maintenance=RecordService._kind_is_maintenance(kind_id))
        elif record_type == RecordType.REVENUE:
            record.revenue = Revenue(kind_id=kind_id, amount=to_decimal(amount))

        try:
            db.session.add(record)
            db.session.flush()
            CarStatsService.on_record_created(record_params_from_model(record))
            RecordService._finish(commit)
        except Exception:
            db.session.rollback()
            raise
        return record

    @staticmethod
    def update_record(record_id, commit=True, **changes):
        """
        Edit an active record.

        Accepts any of the base fields plus volume (refuels), kind_id
        (expenses/revenues) and amount (revenues).  Changing kind_id on an
        expense re-snapshots its maintenance flag from the new kind.
        """
        record = db.session.get(ExpenseBase, record_id)
        if record is None or not record.is_active:
            raise ValueError(f"No active record with id {record_id}")
        if 'record_type' in changes and changes['record_type'] != record.record_type:
            raise ValueError("A record's type cannot be changed; remove it and create a new one")

        old_params = record_params_from_model(record)
        try:
            for field in BASE_FIELDS:
                if field not in changes:
                    continue
                value = changes[field]
                if field == 'when_done':
                    value = to_utc_naive(value)
                elif field == 'home_currency':
                    value = value.upper()
                elif field != 'vehicle_id':
                    value = to_decimal(value)
                setattr(record, field, value)

            if record.refuel is not None and 'volume' in changes:
                record.refuel.volume = to_decimal(changes['volume'])
            if record.expense is not None and 'kind_id' in changes and changes['kind_id'] != record.expense.kind_id:
                record.expense.kind_id = changes['kind_id']
                record.expense.is_maintenance = RecordService._kind_is_maintenance(changes['kind_id'])
            if record.revenue is not None:
                if 'kind_id' in changes:
                    record.revenue.kind_id = changes['kind_id']
                if 'amount' in changes:
                    record.revenue.amount = to_decimal(changes['amount'])

            db.session.flush()
            CarStatsService.on_record_updated(old_params, record_params_from_model(record))
            RecordService._finish(commit)
        except Exception:
            db.session.rollback()
            raise
        return record

    @staticmethod
    def remove_record(record_id, commit=True):
        """Soft-remove a record (removed_at) and subtract it from the summaries."""
        record = db.session.get(ExpenseBase, record_id)
        if record is None or not record.is_active:
            raise ValueError(f"No active record with id {record_id}")

        params = record_params_from_model(record)
        try:
            record.removed_at = datetime.utcnow()
            db.session.flush()
            CarStatsService.on_record_removed(params)
            RecordService._finish(commit)
        except Exception:
            db.session.rollback()
            raise
        logger.debug(f"record {record_id} removed")
        return record

    @staticmethod
    def _kind_is_maintenance(kind_id):
        kind = db.session.get(ExpenseKind, kind_id) if kind_id is not None else None
        if kind is None:
            raise ValueError(f"No expense kind with id {kind_id}")
        return kind.is_maintenance

"""
Travel Service
==============
Create, edit and remove travels, keeping the car summaries in step through
CarStatsService.  Same transaction contract as RecordService: persist, notify,
commit; roll back and re-raise on error.
"""
from datetime import datetime

from extensions import db
from models.travels import Travel, TravelStatus
from services.car_stats_service import CarStatsService
from services.stats_deltas import to_decimal, to_utc_naive, travel_params_from_model

EDITABLE_FIELDS = ('vehicle_id', 'status', 'first_odometer', 'last_odometer', 'distance_km',
                   'first_dttm', 'last_dttm', 'purpose', 'destination')
DATETIME_FIELDS = ('first_dttm', 'last_dttm')
DECIMAL_FIELDS = ('first_odometer', 'last_odometer', 'distance_km')


def _coerce(field, value):
    if field in DATETIME_FIELDS:
        return to_utc_naive(value)
    if field in DECIMAL_FIELDS:
        return to_decimal(value)
    return value


class TravelService:

    @staticmethod
    def create_travel(vehicle_id, status=TravelStatus.IN_PROGRESS, commit=True, **fields):
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown travel field(s): {', '.join(sorted(unknown))}")

        travel = Travel(vehicle_id=vehicle_id, status=status, created_at=datetime.utcnow())
        for field, value in fields.items():
            setattr(travel, field, _coerce(field, value))

        try:
            db.session.add(travel)
            db.session.flush()
            CarStatsService.on_travel_created(travel_params_from_model(travel))
            if commit:
                db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return travel

    @staticmethod
    def update_travel(travel_id, commit=True, **changes):
        travel = db.session.get(Travel, travel_id)
        if travel is None or travel.removed_at is not None:
            raise ValueError(f"No travel with id {travel_id}")
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown travel field(s): {', '.join(sorted(unknown))}")

        old_params = travel_params_from_model(travel)
        try:
            for field, value in changes.items():
                setattr(travel, field, _coerce(field, value))
            db.session.flush()
            CarStatsService.on_travel_updated(old_params, travel_params_from_model(travel))
            if commit:
                db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return travel

    @staticmethod
    def remove_travel(travel_id, commit=True):
        travel = db.session.get(Travel, travel_id)
        if travel is None or travel.removed_at is not None:
            raise ValueError(f"No travel with id {travel_id}")

        params = travel_params_from_model(travel)
        try:
            travel.removed_at = datetime.utcnow()
            db.session.flush()
            CarStatsService.on_travel_removed(params)
            if commit:
                db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return travel

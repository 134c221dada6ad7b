"""
Consumption Service
===================
Keeps the fuel-consumption baseline on the summaries.

The chronologically first active refuel of a vehicle/currency (when_done, then
id) is the baseline: its fuel was burned before any distance was measured, so
its volume is excluded from consumption and its odometer is where distance
starts counting.

  consumption_volume   = total_refuels_volume - first_refuel_volume  (>= 0)
  consumption_distance = latest_known_mileage - first_refuel_odometer (>= 0)

On the monthly rows only the first refuel's month is reduced (and flagged
is_first_refuel_month); every other month's consumption_volume equals its
refuels_volume.
"""
from sqlalchemy import select, update

from extensions import db
from models.car_summaries import CarMonthlySummary, CarTotalSummary
from models.records import ExpenseBase, RecordType, Refuel
from services.stats_deltas import year_month
from services.total_summary_service import active_record_filters
from utils.db_helpers import positive_difference


class ConsumptionService:

    @staticmethod
    def first_refuel(vehicle_id, home_currency):
        return db.session.execute(
            select(ExpenseBase.id, ExpenseBase.odometer, ExpenseBase.when_done, Refuel.volume)
            .join(Refuel, Refuel.id == ExpenseBase.id)
            .where(*active_record_filters(vehicle_id, home_currency), ExpenseBase.record_type == RecordType.REFUEL)
            .order_by(ExpenseBase.when_done.asc(), ExpenseBase.id.asc())
            .limit(1)
        ).first()

    @staticmethod
    def recalculate(vehicle_id, home_currency):
        """Re-pick the first refuel and recompute consumption on total and monthly rows."""
        totals = CarTotalSummary.__table__
        monthly = CarMonthlySummary.__table__
        first = ConsumptionService.first_refuel(vehicle_id, home_currency)

        if first is None:
            total_values = {
                'first_refuel_id': None,
                'first_refuel_odometer': None,
                'first_refuel_volume': None,
                'consumption_volume': 0,
                'consumption_distance': 0,
            }
        else:
            first_volume = first.volume or 0
            total_values = {
                'first_refuel_id': first.id,
                'first_refuel_odometer': first.odometer,
                'first_refuel_volume': first.volume,
                'consumption_volume': positive_difference(totals.c.total_refuels_volume, first_volume),
                'consumption_distance': (
                    positive_difference(totals.c.latest_known_mileage, first.odometer)
                    if first.odometer is not None else 0
                ),
            }
        db.session.execute(
            update(totals)
            .where(totals.c.vehicle_id == vehicle_id, totals.c.home_currency == home_currency)
            .values(**total_values)
        )

        monthly_filters = (monthly.c.vehicle_id == vehicle_id, monthly.c.home_currency == home_currency)
        db.session.execute(
            update(monthly).where(*monthly_filters)
            .values(consumption_volume=monthly.c.refuels_volume, is_first_refuel_month=False)
        )
        if first is not None:
            year, month = year_month(first.when_done)
            db.session.execute(
                update(monthly)
                .where(*monthly_filters, monthly.c.year == year, monthly.c.month == month)
                .values(
                    consumption_volume=positive_difference(monthly.c.refuels_volume, first.volume or 0),
                    is_first_refuel_month=True,
                )
            )

    @staticmethod
    def refresh_distance(vehicle_id):
        """Recompute consumption_distance after the vehicle's mileage moved."""
        totals = CarTotalSummary.__table__
        db.session.execute(
            update(totals)
            .where(totals.c.vehicle_id == vehicle_id)
            .values(consumption_distance=positive_difference(
                totals.c.latest_known_mileage, totals.c.first_refuel_odometer,
            ))
        )

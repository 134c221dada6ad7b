"""
Travel Stats Service
====================
Travels carry no money, so a countable travel (status COMPLETED or later, not
removed) adds to the travel count and distance of every currency row of its
vehicle: the total rows and the monthly row of its month (first_dttm, else
created_at) in each currency.

Travel distance is the entered distance_km, else last_odometer -
first_odometer floored at 0, else 0.

A currency that becomes live after travels already exist picks them up
through rebuild_for_currency().
"""
import logging
from datetime import datetime

from sqlalchemy import Integer, and_, case, cast, extract, func, select, update

from extensions import db
from models.car_summaries import CarMonthlySummary, CarTotalSummary
from models.travels import Travel, TravelStatus
from services.stats_deltas import is_countable_travel, travel_distance, travel_month
from services.total_summary_service import TotalSummaryService
from utils.db_helpers import dialect_insert

logger = logging.getLogger(__name__)


def countable_travel_filters(vehicle_id):
    return (
        Travel.vehicle_id == vehicle_id,
        Travel.status >= TravelStatus.COMPLETED,
        Travel.removed_at.is_(None),
    )


def travel_distance_expr():
    """SQL equivalent of stats_deltas.travel_distance()."""
    return case(
        (Travel.distance_km.isnot(None), Travel.distance_km),
        (and_(Travel.first_odometer.isnot(None), Travel.last_odometer > Travel.first_odometer),
         Travel.last_odometer - Travel.first_odometer),
        else_=0,
    )


def travel_month_exprs():
    bucket = func.coalesce(Travel.first_dttm, Travel.created_at)
    return cast(extract('year', bucket), Integer), cast(extract('month', bucket), Integer)


class TravelStatsService:

    @staticmethod
    def apply_stats_delta(params, sign):
        """
        Add (sign=1) or remove (sign=-1) a countable travel's count and distance
        on every currency of its vehicle.
        """
        if not is_countable_travel(params):
            return
        vehicle_id = params['vehicle_id']
        distance = travel_distance(params) * sign
        totals = CarTotalSummary.__table__

        db.session.execute(
            update(totals).where(totals.c.vehicle_id == vehicle_id).values(
                total_travels_count=totals.c.total_travels_count + sign,
                total_travels_distance=totals.c.total_travels_distance + distance,
                updated_at=datetime.utcnow(),
            )
        )
        year, month = travel_month(params)
        for home_currency in TotalSummaryService.vehicle_currencies(vehicle_id):
            TravelStatsService._apply_monthly_delta(vehicle_id, home_currency, year, month, sign, distance)

    @staticmethod
    def apply_distance_delta(params, distance_delta):
        """Distance edit of a countable travel that stays in the same month."""
        if not distance_delta:
            return
        vehicle_id = params['vehicle_id']
        totals = CarTotalSummary.__table__
        db.session.execute(
            update(totals).where(totals.c.vehicle_id == vehicle_id).values(
                total_travels_distance=totals.c.total_travels_distance + distance_delta,
                updated_at=datetime.utcnow(),
            )
        )
        year, month = travel_month(params)
        for home_currency in TotalSummaryService.vehicle_currencies(vehicle_id):
            TravelStatsService._apply_monthly_delta(vehicle_id, home_currency, year, month, 0, distance_delta)

    @staticmethod
    def _apply_monthly_delta(vehicle_id, home_currency, year, month, count_delta, distance_delta):
        monthly = CarMonthlySummary.__table__
        now = datetime.utcnow()
        if count_delta > 0:
            stmt = dialect_insert(monthly).values(
                vehicle_id=vehicle_id, home_currency=home_currency, year=year, month=month,
                travels_count=count_delta, travels_distance=distance_delta, updated_at=now,
            ).on_conflict_do_update(
                index_elements=['vehicle_id', 'home_currency', 'year', 'month'],
                set_={
                    'travels_count': monthly.c.travels_count + count_delta,
                    'travels_distance': monthly.c.travels_distance + distance_delta,
                    'updated_at': now,
                },
            )
        else:
            stmt = update(monthly).where(
                monthly.c.vehicle_id == vehicle_id,
                monthly.c.home_currency == home_currency,
                monthly.c.year == year,
                monthly.c.month == month,
            ).values(
                travels_count=monthly.c.travels_count + count_delta,
                travels_distance=monthly.c.travels_distance + distance_delta,
                updated_at=now,
            )
        result = db.session.execute(stmt)
        if count_delta < 0 and result.rowcount == 0:
            logger.warning(f"vehicle {vehicle_id} {home_currency} {year}-{month:02d}: no monthly summary for travel removal")

    @staticmethod
    def refresh_latest_travel(vehicle_id):
        """latest_travel_id on every currency row: newest countable travel."""
        totals = CarTotalSummary.__table__
        latest = (
            select(Travel.id)
            .where(*countable_travel_filters(vehicle_id))
            .order_by(func.coalesce(Travel.last_dttm, Travel.first_dttm, Travel.created_at).desc(), Travel.id.desc())
            .limit(1)
            .scalar_subquery()
        )
        db.session.execute(update(totals).where(totals.c.vehicle_id == vehicle_id).values(latest_travel_id=latest))

    @staticmethod
    def rebuild_for_currency(vehicle_id, home_currency):
        """Set the travel columns of one currency's rows from the travels table."""
        totals = CarTotalSummary.__table__
        monthly = CarMonthlySummary.__table__
        now = datetime.utcnow()

        overall = db.session.execute(
            select(
                func.count(Travel.id).label('travels'),
                func.coalesce(func.sum(travel_distance_expr()), 0).label('distance'),
            ).where(*countable_travel_filters(vehicle_id))
        ).one()
        db.session.execute(
            update(totals)
            .where(totals.c.vehicle_id == vehicle_id, totals.c.home_currency == home_currency)
            .values(total_travels_count=overall.travels, total_travels_distance=overall.distance, updated_at=now)
        )

        db.session.execute(
            update(monthly)
            .where(monthly.c.vehicle_id == vehicle_id, monthly.c.home_currency == home_currency)
            .values(travels_count=0, travels_distance=0)
        )
        year_expr, month_expr = travel_month_exprs()
        per_month = db.session.execute(
            select(
                year_expr.label('year'),
                month_expr.label('month'),
                func.count(Travel.id).label('travels'),
                func.coalesce(func.sum(travel_distance_expr()), 0).label('distance'),
            ).where(*countable_travel_filters(vehicle_id)).group_by(year_expr, month_expr)
        ).all()
        for row in per_month:
            stmt = dialect_insert(monthly).values(
                vehicle_id=vehicle_id, home_currency=home_currency, year=row.year, month=row.month,
                travels_count=row.travels, travels_distance=row.distance, updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=['vehicle_id', 'home_currency', 'year', 'month'],
                set_={
                    'travels_count': stmt.excluded.travels_count,
                    'travels_distance': stmt.excluded.travels_distance,
                    'updated_at': now,
                },
            )
            db.session.execute(stmt)

        TravelStatsService.refresh_latest_travel(vehicle_id)

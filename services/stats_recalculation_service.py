"""
Stats Recalculation Service
===========================
Rebuilds the car summaries from scratch, for one vehicle (optionally one
home currency) or for the whole database.

The rebuild is the reference the delta maintenance must agree with: it clears
the summary rows in scope and re-derives them with aggregate
INSERT ... SELECT statements, then runs the same travel, mileage and
consumption passes the delta path uses.

Clearing order respects the foreign keys:
  monthly breakdowns -> monthly summaries -> total breakdowns -> total summaries

Primary entry points
--------------------
  recalculate_car_stats()  - one vehicle, optionally one home currency
  recalculate_all_stats()  - every vehicle (maintenance use)
"""
import logging
from datetime import datetime

from sqlalchemy import DateTime, Integer, and_, case, cast, delete, extract, func, insert, literal, select, true, update

from extensions import db
from models.car_breakdowns import CarMonthlyExpense, CarMonthlyRevenue, CarTotalExpense, CarTotalRevenue
from models.car_summaries import CarMonthlySummary, CarTotalSummary
from models.categories import ExpenseKind
from models.records import ExpenseBase, Expense, RecordType, Refuel, Revenue, RECORD_STATUS_ACTIVE
from services.consumption_service import ConsumptionService
from services.stats_deltas import LATEST_ID_COLUMNS, TOTAL_COLUMNS
from services.total_summary_service import TotalSummaryService, latest_record_id_query
from services.travel_stats_service import TravelStatsService

logger = logging.getLogger(__name__)

BREAKDOWN_SOURCES = (
    (RecordType.EXPENSE, Expense, CarTotalExpense, CarMonthlyExpense),
    (RecordType.REVENUE, Revenue, CarTotalRevenue, CarMonthlyRevenue),
)


def _sum_where(condition, column):
    return func.coalesce(func.sum(case((condition, column), else_=None)), 0)


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def _scope(vehicle_column, currency_column, vehicle_id, home_currency):
    filters = []
    if vehicle_id is not None:
        filters.append(vehicle_column == vehicle_id)
    if home_currency is not None:
        filters.append(currency_column == home_currency)
    return filters


def _record_filters(vehicle_id, home_currency):
    return [
        ExpenseBase.status == RECORD_STATUS_ACTIVE,
        ExpenseBase.removed_at.is_(None),
        *_scope(ExpenseBase.vehicle_id, ExpenseBase.home_currency, vehicle_id, home_currency),
    ]


def _month_exprs():
    return (
        cast(extract('year', ExpenseBase.when_done), Integer),
        cast(extract('month', ExpenseBase.when_done), Integer),
    )


def _aggregate_columns():
    """(monthly column name, aggregate) pairs; totals map names through TOTAL_COLUMNS."""
    is_refuel = ExpenseBase.record_type == RecordType.REFUEL
    is_expense = ExpenseBase.record_type == RecordType.EXPENSE
    is_revenue = ExpenseBase.record_type == RecordType.REVENUE
    is_checkpoint = ExpenseBase.record_type == RecordType.CHECKPOINT
    # Snapshot on the expense wins over the kind's current flag
    is_maintenance = and_(is_expense, func.coalesce(Expense.is_maintenance, ExpenseKind.is_maintenance) == true())

    return [
        ('refuels_count', _count_where(is_refuel)),
        ('expenses_count', _count_where(is_expense)),
        ('revenues_count', _count_where(is_revenue)),
        ('checkpoints_count', _count_where(is_checkpoint)),
        ('maintenance_count', _count_where(is_maintenance)),
        ('refuels_taxes', _sum_where(is_refuel, ExpenseBase.tax_hc)),
        ('refuels_cost', _sum_where(is_refuel, ExpenseBase.total_price_hc)),
        ('refuels_volume', _sum_where(is_refuel, Refuel.volume)),
        ('expenses_fees', _sum_where(is_expense, ExpenseBase.fees_hc)),
        ('expenses_taxes', _sum_where(is_expense, ExpenseBase.tax_hc)),
        ('expenses_cost', _sum_where(is_expense, ExpenseBase.total_price_hc)),
        ('maintenance_cost', _sum_where(is_maintenance, ExpenseBase.total_price_hc)),
        ('revenues_amount', _sum_where(is_revenue, ExpenseBase.total_price_hc)),
    ]


def _with_subtypes(query):
    return (
        query.select_from(ExpenseBase)
        .outerjoin(Refuel, Refuel.id == ExpenseBase.id)
        .outerjoin(Expense, Expense.id == ExpenseBase.id)
        .outerjoin(ExpenseKind, ExpenseKind.id == Expense.kind_id)
    )


class StatsRecalculationService:

    @staticmethod
    def clear(vehicle_id=None, home_currency=None):
        """Delete every summary and breakdown row in scope."""
        totals = CarTotalSummary.__table__
        monthly = CarMonthlySummary.__table__
        monthly_scope = _scope(monthly.c.vehicle_id, monthly.c.home_currency, vehicle_id, home_currency)

        monthly_ids = select(monthly.c.id).where(*monthly_scope)
        for model in (CarMonthlyExpense, CarMonthlyRevenue):
            t = model.__table__
            db.session.execute(delete(t).where(t.c.monthly_summary_id.in_(monthly_ids)))
        db.session.execute(delete(monthly).where(*monthly_scope))
        for model in (CarTotalExpense, CarTotalRevenue):
            t = model.__table__
            db.session.execute(delete(t).where(*_scope(t.c.vehicle_id, t.c.home_currency, vehicle_id, home_currency)))
        db.session.execute(delete(totals).where(*_scope(totals.c.vehicle_id, totals.c.home_currency, vehicle_id, home_currency)))

    @staticmethod
    def insert_monthly_summaries(vehicle_id=None, home_currency=None, now=None):
        monthly = CarMonthlySummary.__table__
        year_expr, month_expr = _month_exprs()
        aggregates = _aggregate_columns()

        columns = ['vehicle_id', 'home_currency', 'year', 'month', 'start_mileage', 'end_mileage',
                   'first_record_at', 'last_record_at', 'updated_at', 'consumption_volume']
        expressions = [
            ExpenseBase.vehicle_id,
            ExpenseBase.home_currency,
            year_expr,
            month_expr,
            func.min(ExpenseBase.odometer),
            func.max(ExpenseBase.odometer),
            func.min(ExpenseBase.when_done),
            func.max(ExpenseBase.when_done),
            literal(now or datetime.utcnow(), DateTime),
            # Reduced for the first refuel month by the consumption pass
            _sum_where(ExpenseBase.record_type == RecordType.REFUEL, Refuel.volume),
        ]
        columns.extend(name for name, _ in aggregates)
        expressions.extend(expression for _, expression in aggregates)

        query = (
            _with_subtypes(select(*expressions))
            .where(*_record_filters(vehicle_id, home_currency))
            .group_by(ExpenseBase.vehicle_id, ExpenseBase.home_currency, year_expr, month_expr)
        )
        db.session.execute(insert(monthly).from_select(columns, query))

    @staticmethod
    def insert_total_summaries(vehicle_id=None, home_currency=None, now=None):
        totals = CarTotalSummary.__table__
        aggregates = _aggregate_columns()

        columns = ['vehicle_id', 'home_currency', 'first_record_at', 'last_record_at', 'updated_at']
        expressions = [
            ExpenseBase.vehicle_id,
            ExpenseBase.home_currency,
            func.min(ExpenseBase.when_done),
            func.max(ExpenseBase.when_done),
            literal(now or datetime.utcnow(), DateTime),
        ]
        columns.extend(TOTAL_COLUMNS[name] for name, _ in aggregates)
        expressions.extend(expression for _, expression in aggregates)

        query = (
            _with_subtypes(select(*expressions))
            .where(*_record_filters(vehicle_id, home_currency))
            .group_by(ExpenseBase.vehicle_id, ExpenseBase.home_currency)
        )
        db.session.execute(insert(totals).from_select(columns, query))

        # Correlated on the row being updated
        latest_ids = {
            column: latest_record_id_query(record_type, totals.c.vehicle_id, totals.c.home_currency)
            for record_type, column in LATEST_ID_COLUMNS.items()
        }
        db.session.execute(
            update(totals)
            .where(*_scope(totals.c.vehicle_id, totals.c.home_currency, vehicle_id, home_currency))
            .values(**latest_ids)
        )

    @staticmethod
    def insert_breakdowns(vehicle_id=None, home_currency=None):
        monthly = CarMonthlySummary.__table__
        year_expr, month_expr = _month_exprs()

        for record_type, subtype, total_model, monthly_model in BREAKDOWN_SOURCES:
            filters = [*_record_filters(vehicle_id, home_currency), ExpenseBase.record_type == record_type]
            records_count = func.count(ExpenseBase.id)
            amount = func.coalesce(func.sum(ExpenseBase.total_price_hc), 0)

            monthly_query = (
                select(monthly.c.id, subtype.kind_id, records_count, amount)
                .select_from(ExpenseBase)
                .join(subtype, subtype.id == ExpenseBase.id)
                .join(monthly, and_(
                    monthly.c.vehicle_id == ExpenseBase.vehicle_id,
                    monthly.c.home_currency == ExpenseBase.home_currency,
                    monthly.c.year == year_expr,
                    monthly.c.month == month_expr,
                ))
                .where(*filters)
                .group_by(monthly.c.id, subtype.kind_id)
            )
            db.session.execute(insert(monthly_model.__table__).from_select(
                ['monthly_summary_id', 'kind_id', 'records_count', 'amount'], monthly_query))

            total_query = (
                select(ExpenseBase.vehicle_id, ExpenseBase.home_currency, subtype.kind_id, records_count, amount)
                .select_from(ExpenseBase)
                .join(subtype, subtype.id == ExpenseBase.id)
                .where(*filters)
                .group_by(ExpenseBase.vehicle_id, ExpenseBase.home_currency, subtype.kind_id)
            )
            db.session.execute(insert(total_model.__table__).from_select(
                ['vehicle_id', 'home_currency', 'kind_id', 'records_count', 'amount'], total_query))

    @staticmethod
    def rebuild(vehicle_id=None, home_currency=None):
        """
        Clear and re-derive every summary in scope.

        Returns:
            list of (vehicle_id, home_currency) pairs that now have summaries.
        """
        db.session.flush()
        now = datetime.utcnow()
        StatsRecalculationService.clear(vehicle_id, home_currency)
        StatsRecalculationService.insert_monthly_summaries(vehicle_id, home_currency, now)
        StatsRecalculationService.insert_total_summaries(vehicle_id, home_currency, now)
        StatsRecalculationService.insert_breakdowns(vehicle_id, home_currency)

        totals = CarTotalSummary.__table__
        keys = db.session.execute(
            select(totals.c.vehicle_id, totals.c.home_currency)
            .where(*_scope(totals.c.vehicle_id, totals.c.home_currency, vehicle_id, home_currency))
            .order_by(totals.c.vehicle_id, totals.c.home_currency)
        ).all()

        for key in keys:
            TravelStatsService.rebuild_for_currency(key.vehicle_id, key.home_currency)
        vehicle_ids = sorted({key.vehicle_id for key in keys})
        for summary_vehicle_id in vehicle_ids:
            TotalSummaryService.refresh_latest_known_mileage(summary_vehicle_id)
        for key in keys:
            ConsumptionService.recalculate(key.vehicle_id, key.home_currency)
        # Out-of-scope currencies share the vehicle mileage
        for summary_vehicle_id in vehicle_ids:
            ConsumptionService.refresh_distance(summary_vehicle_id)
        return [(key.vehicle_id, key.home_currency) for key in keys]

    @staticmethod
    def recalculate_car_stats(vehicle_id, home_currency=None):
        keys = StatsRecalculationService.rebuild(vehicle_id, home_currency)
        logger.info(f"vehicle {vehicle_id}: rebuilt summaries for {len(keys)} currency(ies)")
        return len(keys)

    @staticmethod
    def recalculate_all_stats():
        keys = StatsRecalculationService.rebuild()
        vehicles_count = len({vehicle_id for vehicle_id, _ in keys})
        logger.info(f"rebuilt summaries for {vehicles_count} vehicle(s), {len(keys)} currency row(s)")
        return vehicles_count

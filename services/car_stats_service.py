"""
Car Stats Service
=================
Single entry point that keeps the vehicle summaries in step with every change
to transactional records (refuels, expenses, revenues, checkpoints, travel
points) and travels.

Callers persist the change first, then call exactly one on_* method inside the
same database transaction, and commit.  Any exception propagates; the caller
rolls back, so a record change and its summary maintenance land together or
not at all.

Primary entry points
--------------------
  on_record_created() / on_record_updated() / on_record_removed()
  on_travel_created() / on_travel_updated() / on_travel_removed()
  recalculate_car_stats()  - rebuild one vehicle (optionally one currency)
  recalculate_all_stats()  - rebuild everything

Update dispatch
---------------
A record update that changes vehicle, currency, type, month, kind or
maintenance classification is structural: it is applied as removal of the old
version followed by creation of the new one.  Anything else is applied as
per-column deltas on the existing rows.

Travel updates are structural when vehicle, month or countability
(status >= COMPLETED) changes.
"""
import logging

from extensions import db
from models.records import RecordType
from services.consumption_service import ConsumptionService
from services.kind_breakdown_service import KindBreakdownService
from services.monthly_summary_service import MonthlySummaryService
from services.stats_deltas import (
    is_countable_travel, is_structural_change, is_structural_travel_change, negate,
    travel_distance, value_delta, value_deltas, year_month,
)
from services.stats_recalculation_service import StatsRecalculationService
from services.total_summary_service import TotalSummaryService
from services.travel_stats_service import TravelStatsService

logger = logging.getLogger(__name__)


class CarStatsService:
    """Incremental maintenance of car_total_* and car_monthly_* summaries."""

    # ------------------------------------------------------------------
    # Transactional records
    # ------------------------------------------------------------------

    @staticmethod
    def on_record_created(params):
        """
        Add a newly created active record to its summaries.

        Args:
            params: Record event built by stats_deltas.build_record_params()
                    or record_params_from_model().
        """
        db.session.flush()
        vehicle_id = params['vehicle_id']
        home_currency = params['home_currency']

        was_live = TotalSummaryService.lock_summary(vehicle_id, home_currency)
        TotalSummaryService.apply_create_delta(params)
        monthly_summary_id = MonthlySummaryService.apply_create_delta(params)
        KindBreakdownService.apply_record_delta(params, monthly_summary_id, 1, params['amount_hc'])

        if not was_live:
            # First record in this currency: pick up existing travels and mileage
            TravelStatsService.rebuild_for_currency(vehicle_id, home_currency)
            TotalSummaryService.refresh_latest_known_mileage(vehicle_id)
            mileage_changed = True
        else:
            mileage_changed = TotalSummaryService.raise_latest_known_mileage(vehicle_id, params['odometer'])

        if params['record_type'] == RecordType.REFUEL:
            ConsumptionService.recalculate(vehicle_id, home_currency)
        if mileage_changed:
            ConsumptionService.refresh_distance(vehicle_id)

        logger.debug(f"vehicle {vehicle_id} {home_currency}: added record {params['record_id']}")

    @staticmethod
    def on_record_removed(params):
        """Subtract a removed (or deactivated) record from its summaries."""
        db.session.flush()
        vehicle_id = params['vehicle_id']
        home_currency = params['home_currency']
        year, month = year_month(params['when_done'])

        TotalSummaryService.lock_summary(vehicle_id, home_currency)
        TotalSummaryService.apply_remove_delta(params)
        still_live = TotalSummaryService.recalculate_min_max(vehicle_id, home_currency)

        monthly_summary_id = MonthlySummaryService.apply_remove_delta(params)
        if monthly_summary_id is not None:
            MonthlySummaryService.recalculate_min_max(vehicle_id, home_currency, year, month)
        KindBreakdownService.apply_record_delta(params, monthly_summary_id, -1, negate(params['amount_hc']))

        TotalSummaryService.refresh_latest_known_mileage(vehicle_id)
        if params['record_type'] == RecordType.REFUEL:
            ConsumptionService.recalculate(vehicle_id, home_currency)
        ConsumptionService.refresh_distance(vehicle_id)

        if not still_live:
            logger.info(f"vehicle {vehicle_id} {home_currency}: last record removed, summary reset")
        logger.debug(f"vehicle {vehicle_id} {home_currency}: removed record {params['record_id']}")

    @staticmethod
    def on_record_updated(old_params, new_params):
        """Apply an edit of an active record."""
        if is_structural_change(old_params, new_params):
            logger.debug(f"record {new_params['record_id']}: structural update, re-adding")
            CarStatsService.on_record_removed(old_params)
            CarStatsService.on_record_created(new_params)
            return

        db.session.flush()
        vehicle_id = new_params['vehicle_id']
        home_currency = new_params['home_currency']
        year, month = year_month(new_params['when_done'])

        TotalSummaryService.lock_summary(vehicle_id, home_currency)
        deltas = value_deltas(old_params, new_params)
        TotalSummaryService.apply_value_delta(vehicle_id, home_currency, deltas)
        monthly_summary_id = MonthlySummaryService.apply_value_delta(vehicle_id, home_currency, year, month, deltas)
        KindBreakdownService.apply_record_delta(
            new_params, monthly_summary_id, 0, value_delta(old_params['amount_hc'], new_params['amount_hc']))

        odometer_changed = old_params['odometer'] != new_params['odometer']
        date_changed = old_params['when_done'] != new_params['when_done']
        if odometer_changed or date_changed:
            TotalSummaryService.recalculate_min_max(vehicle_id, home_currency)
            MonthlySummaryService.recalculate_min_max(vehicle_id, home_currency, year, month)
        if odometer_changed:
            TotalSummaryService.refresh_latest_known_mileage(vehicle_id)

        volume_changed = old_params['volume'] != new_params['volume']
        if new_params['record_type'] == RecordType.REFUEL and (odometer_changed or date_changed or volume_changed):
            ConsumptionService.recalculate(vehicle_id, home_currency)
        if odometer_changed:
            ConsumptionService.refresh_distance(vehicle_id)
        logger.debug(f"vehicle {vehicle_id} {home_currency}: updated record {new_params['record_id']} in place")

    # ------------------------------------------------------------------
    # Travels
    # ------------------------------------------------------------------

    @staticmethod
    def on_travel_created(params):
        db.session.flush()
        vehicle_id = params['vehicle_id']

        TotalSummaryService.lock_summary(vehicle_id)
        mileage_changed = TotalSummaryService.raise_latest_known_mileage(vehicle_id, params['last_known_odometer'])
        TravelStatsService.apply_stats_delta(params, 1)
        TravelStatsService.refresh_latest_travel(vehicle_id)
        if mileage_changed:
            ConsumptionService.refresh_distance(vehicle_id)
        logger.debug(f"vehicle {vehicle_id}: added travel {params['travel_id']}")

    @staticmethod
    def on_travel_removed(params):
        db.session.flush()
        vehicle_id = params['vehicle_id']

        TotalSummaryService.lock_summary(vehicle_id)
        TravelStatsService.apply_stats_delta(params, -1)
        TotalSummaryService.refresh_latest_known_mileage(vehicle_id)
        TravelStatsService.refresh_latest_travel(vehicle_id)
        ConsumptionService.refresh_distance(vehicle_id)
        logger.debug(f"vehicle {vehicle_id}: removed travel {params['travel_id']}")

    @staticmethod
    def on_travel_updated(old_params, new_params):
        db.session.flush()
        vehicle_ids = sorted({old_params['vehicle_id'], new_params['vehicle_id']})
        for vehicle_id in vehicle_ids:
            TotalSummaryService.lock_summary(vehicle_id)

        if is_structural_travel_change(old_params, new_params):
            TravelStatsService.apply_stats_delta(old_params, -1)
            TravelStatsService.apply_stats_delta(new_params, 1)
        elif is_countable_travel(new_params):
            TravelStatsService.apply_distance_delta(
                new_params, travel_distance(new_params) - travel_distance(old_params))

        mileage_moved = (
            old_params['vehicle_id'] != new_params['vehicle_id']
            or old_params['last_known_odometer'] != new_params['last_known_odometer']
        )
        for vehicle_id in vehicle_ids:
            if mileage_moved:
                TotalSummaryService.refresh_latest_known_mileage(vehicle_id)
                ConsumptionService.refresh_distance(vehicle_id)
            TravelStatsService.refresh_latest_travel(vehicle_id)
        logger.debug(f"travel {new_params['travel_id']}: updated on vehicle(s) {vehicle_ids}")

    # ------------------------------------------------------------------
    # Full recalculation
    # ------------------------------------------------------------------

    @staticmethod
    def recalculate_car_stats(vehicle_id, home_currency=None):
        """Rebuild one vehicle's summaries from its records and travels."""
        return StatsRecalculationService.recalculate_car_stats(vehicle_id, home_currency)

    @staticmethod
    def recalculate_all_stats():
        """Rebuild every summary. Returns the number of vehicles with summaries."""
        return StatsRecalculationService.recalculate_all_stats()

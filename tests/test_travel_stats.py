"""
Tests for travel-driven summary maintenance.

Travels carry no money, so countable travels show up in every currency row of
their vehicle; mileage follows every non-removed travel regardless of status.
"""
from datetime import datetime
from decimal import Decimal

from models.records import RecordType
from models.travels import TravelStatus
from services.travel_service import TravelService


def _two_currencies(vehicle_id, add_record):
    add_record(vehicle_id, RecordType.CHECKPOINT, datetime(2024, 5, 1), odometer=1000, currency='USD')
    add_record(vehicle_id, RecordType.CHECKPOINT, datetime(2024, 5, 2), odometer=1010, currency='EUR')


class TestTravelCounts:
    def test_completed_travel_counts_in_every_currency(self, app, vehicle, add_record, add_travel,
                                                       total_summary, monthly_summary):
        _two_currencies(vehicle.id, add_record)

        travel_id = add_travel(vehicle.id, TravelStatus.COMPLETED, distance_km=50, first_dttm=datetime(2024, 5, 10))

        for currency in ('USD', 'EUR'):
            total = total_summary(vehicle.id, currency)
            assert total.total_travels_count == 1
            assert total.total_travels_distance == Decimal('50')
            assert total.latest_travel_id == travel_id
            month = monthly_summary(vehicle.id, 2024, 5, currency)
            assert month.travels_count == 1
            assert month.travels_distance == Decimal('50')

    def test_in_progress_travel_moves_mileage_only(self, app, vehicle, add_record, add_travel, total_summary):
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 5, 1), odometer=1000)

        add_travel(vehicle.id, TravelStatus.IN_PROGRESS, first_odometer=1000, first_dttm=datetime(2024, 5, 10))
        travel = TravelService.update_travel(
            TravelService.create_travel(vehicle.id, status=TravelStatus.IN_PROGRESS,
                                        first_odometer=1000, last_odometer=1120,
                                        first_dttm=datetime(2024, 5, 11)).id,
            last_odometer=1150,
        )

        total = total_summary(vehicle.id)
        assert total.total_travels_count == 0
        assert total.latest_travel_id is None
        assert total.latest_known_mileage == Decimal('1150')
        assert travel.last_odometer == Decimal('1150')

    def test_completion_adds_and_reopening_removes(self, app, vehicle, add_record, add_travel, total_summary):
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 5, 1), odometer=1000)
        travel_id = add_travel(vehicle.id, TravelStatus.IN_PROGRESS, first_odometer=1000, last_odometer=1080,
                               first_dttm=datetime(2024, 5, 10))

        TravelService.update_travel(travel_id, status=TravelStatus.COMPLETED)
        total = total_summary(vehicle.id)
        assert total.total_travels_count == 1
        assert total.total_travels_distance == Decimal('80')

        TravelService.update_travel(travel_id, status=TravelStatus.IN_PROGRESS)
        total = total_summary(vehicle.id)
        assert total.total_travels_count == 0
        assert total.total_travels_distance == Decimal('0')

    def test_distance_edit_applies_delta(self, app, vehicle, add_record, add_travel, total_summary, monthly_summary):
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 5, 1), odometer=1000)
        travel_id = add_travel(vehicle.id, TravelStatus.APPROVED, distance_km=50, first_dttm=datetime(2024, 5, 10))

        TravelService.update_travel(travel_id, distance_km=72)

        assert total_summary(vehicle.id).total_travels_distance == Decimal('72')
        assert monthly_summary(vehicle.id, 2024, 5).travels_distance == Decimal('72')

    def test_month_change_moves_travel(self, app, vehicle, add_record, add_travel, monthly_summary):
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 5, 1), odometer=1000)
        travel_id = add_travel(vehicle.id, TravelStatus.COMPLETED, distance_km=50, first_dttm=datetime(2024, 5, 10))

        TravelService.update_travel(travel_id, first_dttm=datetime(2024, 6, 3))

        assert monthly_summary(vehicle.id, 2024, 5).travels_count == 0
        june = monthly_summary(vehicle.id, 2024, 6)
        assert june.travels_count == 1
        assert june.travels_distance == Decimal('50')
        assert june.first_record_at is None

    def test_removal(self, app, vehicle, add_record, add_travel, total_summary):
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 5, 1), odometer=1000)
        travel_id = add_travel(vehicle.id, TravelStatus.COMPLETED, first_odometer=1000, last_odometer=1300,
                               first_dttm=datetime(2024, 5, 10))
        assert total_summary(vehicle.id).latest_known_mileage == Decimal('1300')

        TravelService.remove_travel(travel_id)

        total = total_summary(vehicle.id)
        assert total.total_travels_count == 0
        assert total.total_travels_distance == Decimal('0')
        assert total.latest_travel_id is None
        assert total.latest_known_mileage == Decimal('1000')

    def test_latest_travel_follows_most_recent_activity(self, app, vehicle, add_record, add_travel, total_summary):
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 5, 1), odometer=1000)
        older = add_travel(vehicle.id, TravelStatus.COMPLETED, distance_km=5,
                           first_dttm=datetime(2024, 5, 2), last_dttm=datetime(2024, 5, 3))
        newer = add_travel(vehicle.id, TravelStatus.COMPLETED, distance_km=5,
                           first_dttm=datetime(2024, 5, 4), last_dttm=datetime(2024, 5, 5))
        assert total_summary(vehicle.id).latest_travel_id == newer

        TravelService.update_travel(older, last_dttm=datetime(2024, 5, 9))
        assert total_summary(vehicle.id).latest_travel_id == older

    def test_travels_before_first_record_are_picked_up(self, app, vehicle, add_record, add_travel, total_summary):
        add_travel(vehicle.id, TravelStatus.COMPLETED, distance_km=40, first_odometer=500, last_odometer=540,
                   first_dttm=datetime(2024, 4, 10))

        add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 5, 1), odometer=520, amount='30.00', volume=20)

        total = total_summary(vehicle.id)
        assert total.total_travels_count == 1
        assert total.total_travels_distance == Decimal('40')
        assert total.latest_known_mileage == Decimal('540')
        assert total.consumption_distance == Decimal('20')

    def test_travel_moved_to_other_vehicle(self, app, vehicle, other_vehicle, add_record, add_travel, total_summary):
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 5, 1), odometer=1000)
        add_record(other_vehicle.id, RecordType.CHECKPOINT, datetime(2024, 5, 1), odometer=200)
        travel_id = add_travel(vehicle.id, TravelStatus.COMPLETED, first_odometer=1000, last_odometer=1100,
                               first_dttm=datetime(2024, 5, 10))

        TravelService.update_travel(travel_id, vehicle_id=other_vehicle.id)

        source = total_summary(vehicle.id)
        target = total_summary(other_vehicle.id)
        assert source.total_travels_count == 0
        assert source.latest_known_mileage == Decimal('1000')
        assert target.total_travels_count == 1
        assert target.total_travels_distance == Decimal('100')
        assert target.latest_known_mileage == Decimal('1100')

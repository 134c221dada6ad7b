"""
Integration tests for record-driven summary maintenance.

Records are created, edited and removed through RecordService, which calls
CarStatsService in the same transaction; assertions read the summary rows
back from the database.
"""
from datetime import datetime
from decimal import Decimal

import pytest

from models.records import RecordType
from services.record_service import RecordService


class TestRefuels:
    def test_two_refuels_build_totals_and_consumption(self, app, vehicle, add_record, total_summary):
        first = add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 1, 5), odometer=10000, amount='60.00', volume=40)
        second = add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 2, 10), odometer=10400, amount='57.00', volume=38)

        total = total_summary(vehicle.id)
        assert total.total_refuels_count == 2
        assert total.total_refuels_volume == Decimal('78')
        assert total.total_refuels_cost == Decimal('117')
        assert total.latest_known_mileage == Decimal('10400')
        assert total.latest_refuel_id == second
        assert total.first_refuel_id == first
        assert total.first_refuel_odometer == Decimal('10000')
        assert total.first_refuel_volume == Decimal('40')
        assert total.consumption_volume == Decimal('38')
        assert total.consumption_distance == Decimal('400')
        assert total.first_record_at == datetime(2024, 1, 5)
        assert total.last_record_at == datetime(2024, 2, 10)

    def test_first_refuel_month_is_marked(self, app, vehicle, add_record, monthly_summary):
        add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 1, 5), odometer=10000, amount='60.00', volume=40)
        add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 1, 20), odometer=10200, amount='30.00', volume=20)
        add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 2, 10), odometer=10400, amount='57.00', volume=38)

        january = monthly_summary(vehicle.id, 2024, 1)
        february = monthly_summary(vehicle.id, 2024, 2)
        assert january.is_first_refuel_month is True
        assert january.refuels_volume == Decimal('60')
        assert january.consumption_volume == Decimal('20')
        assert february.is_first_refuel_month is False
        assert february.consumption_volume == Decimal('38')

    def test_earlier_refuel_takes_over_as_baseline(self, app, vehicle, add_record, total_summary, monthly_summary):
        add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 2, 10), odometer=10400, amount='57.00', volume=38)
        earlier = add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 1, 5), odometer=10000, amount='60.00', volume=40)

        total = total_summary(vehicle.id)
        assert total.first_refuel_id == earlier
        assert total.consumption_volume == Decimal('38')
        assert total.consumption_distance == Decimal('400')
        assert monthly_summary(vehicle.id, 2024, 1).is_first_refuel_month is True
        assert monthly_summary(vehicle.id, 2024, 2).is_first_refuel_month is False
        assert monthly_summary(vehicle.id, 2024, 2).consumption_volume == Decimal('38')

    def test_removing_first_refuel_moves_baseline(self, app, vehicle, add_record, total_summary, monthly_summary):
        first = add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 1, 5), odometer=10000, amount='60.00', volume=40)
        second = add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 2, 10), odometer=10400, amount='57.00', volume=38)

        RecordService.remove_record(first)

        total = total_summary(vehicle.id)
        assert total.total_refuels_count == 1
        assert total.first_refuel_id == second
        assert total.consumption_volume == Decimal('0')
        assert total.consumption_distance == Decimal('0')
        assert monthly_summary(vehicle.id, 2024, 2).is_first_refuel_month is True


class TestExpensesAndRevenues:
    def test_maintenance_expense_counts_twice(self, app, vehicle, kinds, add_record, total_summary, monthly_summary):
        add_record(vehicle.id, RecordType.EXPENSE, datetime(2024, 3, 1), odometer=500, amount='80.00',
                   kind_id=kinds['oil'], fees_hc='2.00', tax_hc='8.00')
        add_record(vehicle.id, RecordType.EXPENSE, datetime(2024, 3, 2), amount='5.00', kind_id=kinds['parking'])

        total = total_summary(vehicle.id)
        assert total.total_expenses_count == 2
        assert total.total_expenses_cost == Decimal('85')
        assert total.total_maintenance_count == 1
        assert total.total_maintenance_cost == Decimal('80')
        assert total.expenses_fees == Decimal('2')
        assert total.expenses_taxes == Decimal('8')
        month = monthly_summary(vehicle.id, 2024, 3)
        assert month.maintenance_count == 1
        assert month.expenses_cost == Decimal('85')

    def test_revenue_and_checkpoint(self, app, vehicle, kinds, add_record, total_summary):
        revenue = add_record(vehicle.id, RecordType.REVENUE, datetime(2024, 3, 1), amount='40.00', kind_id=kinds['rideshare'])
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 3, 5), odometer=1200)

        total = total_summary(vehicle.id)
        assert total.total_revenues_count == 1
        assert total.total_revenues_amount == Decimal('40')
        assert total.latest_revenue_id == revenue
        assert total.total_checkpoints_count == 1
        assert total.latest_known_mileage == Decimal('1200')

    def test_unconverted_amount_counts_but_adds_nothing(self, app, vehicle, kinds, add_record, total_summary):
        record_id = add_record(vehicle.id, RecordType.EXPENSE, datetime(2024, 3, 1), amount=None, kind_id=kinds['parking'])

        total = total_summary(vehicle.id)
        assert total.total_expenses_count == 1
        assert total.total_expenses_cost == Decimal('0')

        RecordService.update_record(record_id, total_price_hc='12.50')
        assert total_summary(vehicle.id).total_expenses_cost == Decimal('12.50')


class TestRemoval:
    def test_removing_last_record_resets_currency_row(self, app, vehicle, kinds, add_record, total_summary, monthly_summary):
        record_id = add_record(vehicle.id, RecordType.EXPENSE, datetime(2024, 3, 1), odometer=900,
                               amount='80.00', kind_id=kinds['oil'])

        RecordService.remove_record(record_id)

        total = total_summary(vehicle.id)
        assert total.total_expenses_count == 0
        assert total.total_expenses_cost == Decimal('0')
        assert total.total_maintenance_count == 0
        assert total.first_record_at is None
        assert total.last_record_at is None
        assert total.latest_expense_id is None
        assert total.latest_known_mileage == Decimal('0')
        month = monthly_summary(vehicle.id, 2024, 3)
        assert month.expenses_count == 0
        assert month.start_mileage is None
        assert month.end_mileage is None

    def test_latest_id_falls_back_to_previous_record(self, app, vehicle, kinds, add_record, total_summary):
        older = add_record(vehicle.id, RecordType.EXPENSE, datetime(2024, 3, 1), amount='5.00', kind_id=kinds['parking'])
        newer = add_record(vehicle.id, RecordType.EXPENSE, datetime(2024, 3, 9), amount='6.00', kind_id=kinds['parking'])
        assert total_summary(vehicle.id).latest_expense_id == newer

        RecordService.remove_record(newer)

        total = total_summary(vehicle.id)
        assert total.latest_expense_id == older
        assert total.last_record_at == datetime(2024, 3, 1)

    def test_monthly_mileage_window_shrinks(self, app, vehicle, add_record, monthly_summary):
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 6, 1), odometer=100)
        highest = add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 6, 2), odometer=300)
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 6, 3), odometer=200)

        month = monthly_summary(vehicle.id, 2024, 6)
        assert (month.start_mileage, month.end_mileage) == (Decimal('100'), Decimal('300'))

        RecordService.remove_record(highest)
        month = monthly_summary(vehicle.id, 2024, 6)
        assert (month.start_mileage, month.end_mileage) == (Decimal('100'), Decimal('200'))

    def test_removing_highest_odometer_lowers_mileage(self, app, vehicle, add_record, total_summary):
        add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 6, 1), odometer=100)
        highest = add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 6, 2), odometer=300)

        RecordService.remove_record(highest)
        assert total_summary(vehicle.id).latest_known_mileage == Decimal('100')

    def test_removing_twice_is_rejected(self, app, vehicle, add_record):
        record_id = add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 6, 1), odometer=100)
        RecordService.remove_record(record_id)
        with pytest.raises(ValueError):
            RecordService.remove_record(record_id)


class TestUpdates:
    def test_amount_edit_applies_delta(self, app, vehicle, add_record, total_summary, monthly_summary):
        record_id = add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 1, 5), odometer=10000, amount='60.00', volume=40)

        RecordService.update_record(record_id, total_price_hc='66.00', volume=44)

        total = total_summary(vehicle.id)
        assert total.total_refuels_count == 1
        assert total.total_refuels_cost == Decimal('66')
        assert total.total_refuels_volume == Decimal('44')
        assert total.first_refuel_volume == Decimal('44')
        assert monthly_summary(vehicle.id, 2024, 1).refuels_cost == Decimal('66')

    def test_odometer_edit_refreshes_mileage(self, app, vehicle, add_record, total_summary):
        add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 1, 5), odometer=10000, amount='60.00', volume=40)
        second = add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 1, 25), odometer=10400, amount='57.00', volume=38)

        RecordService.update_record(second, odometer=10250)

        total = total_summary(vehicle.id)
        assert total.latest_known_mileage == Decimal('10250')
        assert total.consumption_distance == Decimal('250')

    def test_moving_record_between_vehicles(self, app, vehicle, other_vehicle, kinds, add_record, total_summary):
        record_id = add_record(vehicle.id, RecordType.EXPENSE, datetime(2024, 3, 1), odometer=700,
                               amount='80.00', kind_id=kinds['oil'])

        RecordService.update_record(record_id, vehicle_id=other_vehicle.id)

        assert total_summary(vehicle.id).total_expenses_count == 0
        assert total_summary(vehicle.id).first_record_at is None
        moved = total_summary(other_vehicle.id)
        assert moved.total_expenses_count == 1
        assert moved.total_maintenance_cost == Decimal('80')
        assert moved.latest_known_mileage == Decimal('700')

    def test_kind_change_reclassifies_maintenance(self, app, vehicle, kinds, add_record, total_summary):
        record_id = add_record(vehicle.id, RecordType.EXPENSE, datetime(2024, 3, 1), amount='80.00', kind_id=kinds['parking'])

        RecordService.update_record(record_id, kind_id=kinds['oil'])

        total = total_summary(vehicle.id)
        assert total.total_expenses_count == 1
        assert total.total_maintenance_count == 1
        assert total.total_maintenance_cost == Decimal('80')

    def test_type_change_is_rejected(self, app, vehicle, add_record):
        record_id = add_record(vehicle.id, RecordType.CHECKPOINT, datetime(2024, 6, 1), odometer=100)
        with pytest.raises(ValueError):
            RecordService.update_record(record_id, record_type=RecordType.REFUEL)


class TestCurrencies:
    def test_currencies_are_kept_apart_but_share_mileage(self, app, vehicle, add_record, total_summary):
        add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 1, 5), odometer=10000, amount='60.00', volume=40, currency='USD')
        add_record(vehicle.id, RecordType.REFUEL, datetime(2024, 2, 5), odometer=10800, amount='50.00', volume=35, currency='EUR')

        usd = total_summary(vehicle.id, 'USD')
        eur = total_summary(vehicle.id, 'EUR')
        assert usd.total_refuels_count == 1
        assert eur.total_refuels_count == 1
        assert usd.total_refuels_cost == Decimal('60')
        assert eur.total_refuels_cost == Decimal('50')
        assert usd.latest_known_mileage == Decimal('10800')
        assert eur.latest_known_mileage == Decimal('10800')
        assert usd.consumption_distance == Decimal('800')


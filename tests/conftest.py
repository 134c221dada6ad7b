"""
Shared pytest fixtures for the car stats test suite.

All tests run against an in-memory SQLite database (TestingConfig) unless
TEST_DATABASE_URL points somewhere else.  A single app context is pushed for
the whole session so that SQLAlchemy objects remain attached throughout.
After each test, clean_db wipes all rows so tests are fully independent.
"""
import pytest
from app import create_app
from extensions import db as _db


# ---------------------------------------------------------------------------
# Application / database lifecycle
# ---------------------------------------------------------------------------

@pytest.fixture(scope='session')
def app():
    """Create a test Flask application with an in-memory SQLite database."""
    application = create_app('testing')
    ctx = application.app_context()
    ctx.push()
    _db.create_all()
    yield application
    _db.session.remove()
    _db.drop_all()
    ctx.pop()


@pytest.fixture(autouse=True)
def clean_db(app):
    """Wipe every table after each test so tests never share state."""
    yield
    _db.session.rollback()
    for table in reversed(_db.metadata.sorted_tables):
        _db.session.execute(table.delete())
    _db.session.commit()
    _db.session.expunge_all()


# ---------------------------------------------------------------------------
# Common model helpers
# ---------------------------------------------------------------------------

def _make_vehicle(name):
    from models.vehicles import Vehicle
    v = Vehicle(name=name, make='Skoda', model='Octavia', year=2019, registration=name.upper()[:8])
    _db.session.add(v)
    _db.session.commit()
    return v


@pytest.fixture
def vehicle(app):
    return _make_vehicle('Family car')


@pytest.fixture
def other_vehicle(app):
    return _make_vehicle('Van')


@pytest.fixture
def kinds(app):
    """Expense kinds (maintenance and not) and a revenue kind."""
    from models.categories import ExpenseKind, RevenueKind
    oil = ExpenseKind(name='Oil change', is_maintenance=True)
    parking = ExpenseKind(name='Parking', is_maintenance=False)
    rideshare = RevenueKind(name='Rideshare')
    _db.session.add_all([oil, parking, rideshare])
    _db.session.commit()
    return {'oil': oil.id, 'parking': parking.id, 'rideshare': rideshare.id}


@pytest.fixture
def add_record(app):
    """Create a record through RecordService; amounts in home currency."""
    from services.record_service import RecordService

    def _add(vehicle_id, record_type, when, odometer=None, amount=None, currency='USD', **kwargs):
        record = RecordService.create_record(
            vehicle_id=vehicle_id,
            record_type=record_type,
            home_currency=currency,
            when_done=when,
            odometer=odometer,
            total_price=amount,
            total_price_hc=amount,
            **kwargs,
        )
        return record.id

    return _add


@pytest.fixture
def add_travel(app):
    from services.travel_service import TravelService

    def _add(vehicle_id, status, **fields):
        return TravelService.create_travel(vehicle_id, status=status, **fields).id

    return _add


# ---------------------------------------------------------------------------
# Summary snapshots
# ---------------------------------------------------------------------------

def _columns(model, exclude):
    return [c.name for c in model.__table__.columns if c.name not in exclude]


def _snapshot():
    """
    Comparable picture of every summary row that carries information.

    Ignores updated_at and monthly ids, rows of currencies with no active
    records, month rows with neither records nor travels, and breakdown rows
    whose count dropped to zero.
    """
    from models import (CarMonthlyExpense, CarMonthlyRevenue, CarMonthlySummary,
                        CarTotalExpense, CarTotalRevenue, CarTotalSummary)

    _db.session.expire_all()
    totals, monthly, breakdowns = {}, {}, {}

    total_columns = _columns(CarTotalSummary, {'updated_at'})
    for row in CarTotalSummary.query.all():
        if row.first_record_at is None:
            continue
        totals[(row.vehicle_id, row.home_currency)] = {c: getattr(row, c) for c in total_columns}

    month_keys = {}
    monthly_columns = _columns(CarMonthlySummary, {'updated_at', 'id'})
    for row in CarMonthlySummary.query.all():
        if (row.vehicle_id, row.home_currency) not in totals:
            continue
        if row.first_record_at is None and row.travels_count == 0:
            continue
        key = (row.vehicle_id, row.home_currency, row.year, row.month)
        month_keys[row.id] = key
        monthly[key] = {c: getattr(row, c) for c in monthly_columns}

    for label, model in (('expense', CarTotalExpense), ('revenue', CarTotalRevenue)):
        for row in model.query.filter(model.records_count > 0).all():
            if (row.vehicle_id, row.home_currency) in totals:
                breakdowns[(label, row.vehicle_id, row.home_currency, row.kind_id)] = (row.records_count, row.amount)
    for label, model in (('expense', CarMonthlyExpense), ('revenue', CarMonthlyRevenue)):
        for row in model.query.filter(model.records_count > 0).all():
            if row.monthly_summary_id in month_keys:
                key = (label,) + month_keys[row.monthly_summary_id] + (row.kind_id,)
                breakdowns[key] = (row.records_count, row.amount)

    return {'totals': totals, 'monthly': monthly, 'breakdowns': breakdowns}


@pytest.fixture
def stats_snapshot(app):
    return _snapshot


@pytest.fixture
def total_summary(app):
    """Fresh CarTotalSummary for (vehicle_id, currency), or None."""
    from models.car_summaries import CarTotalSummary

    def _get(vehicle_id, currency='USD'):
        _db.session.expire_all()
        return _db.session.get(CarTotalSummary, (vehicle_id, currency))

    return _get


@pytest.fixture
def monthly_summary(app):
    from models.car_summaries import CarMonthlySummary

    def _get(vehicle_id, year, month, currency='USD'):
        _db.session.expire_all()
        return CarMonthlySummary.query.filter_by(
            vehicle_id=vehicle_id, home_currency=currency, year=year, month=month,
        ).first()

    return _get

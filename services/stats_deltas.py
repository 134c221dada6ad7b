"""
Stats Deltas
============
Pure helpers shared by the car summary maintainers: null-aware deltas, month
bucketing, structural-change detection and the change-event dictionaries
that callers hand to CarStatsService.

Null semantics
--------------
A home-currency amount stays NULL until its conversion has been resolved.
value_delta(None, None) is None, meaning "no change": the maintainers leave the
column untouched instead of adding 0.  Any other combination treats a missing
side as 0, so a late conversion (None -> 12.50) arrives as a +12.50 delta.

Change events
-------------
Record event (build_record_params / record_params_from_model)::

    {'record_id', 'vehicle_id', 'home_currency', 'record_type', 'when_done',
     'odometer', 'amount_hc', 'kind_id', 'volume', 'taxes_hc', 'fees_hc',
     'is_maintenance'}

Travel event (build_travel_params / travel_params_from_model)::

    {'travel_id', 'vehicle_id', 'status', 'first_dttm', 'last_dttm',
     'created_at', 'distance_km', 'first_odometer', 'last_odometer',
     'last_known_odometer'}
"""
from datetime import date, datetime, timezone
from decimal import Decimal

from dateutil import parser as date_parser

from models.records import RecordType
from models.travels import TravelStatus


# Monthly column name -> total summary column name
TOTAL_COLUMNS = {
    'refuels_count': 'total_refuels_count',
    'refuels_cost': 'total_refuels_cost',
    'refuels_volume': 'total_refuels_volume',
    'refuels_taxes': 'refuels_taxes',
    'expenses_count': 'total_expenses_count',
    'expenses_cost': 'total_expenses_cost',
    'expenses_fees': 'expenses_fees',
    'expenses_taxes': 'expenses_taxes',
    'maintenance_count': 'total_maintenance_count',
    'maintenance_cost': 'total_maintenance_cost',
    'revenues_count': 'total_revenues_count',
    'revenues_amount': 'total_revenues_amount',
    'checkpoints_count': 'total_checkpoints_count',
}

COUNT_COLUMNS = ('refuels_count', 'expenses_count', 'maintenance_count', 'revenues_count', 'checkpoints_count')

# "Latest X" identifier kept on the total summary, per record type
LATEST_ID_COLUMNS = {
    RecordType.REFUEL: 'latest_refuel_id',
    RecordType.EXPENSE: 'latest_expense_id',
    RecordType.REVENUE: 'latest_revenue_id',
}


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------

def to_decimal(value):
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_utc_naive(value):
    """Coerce a datetime, date or ISO string to a naive UTC datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        value = date_parser.isoparse(value)
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def count_delta(old_counted, new_counted):
    """-1, 0 or +1 depending on whether a record stops or starts counting."""
    return int(bool(new_counted)) - int(bool(old_counted))


def value_delta(old, new):
    """new - old, or None when both sides are None (no change)."""
    if old is None and new is None:
        return None
    return (to_decimal(new) or Decimal('0')) - (to_decimal(old) or Decimal('0'))


def negate(value):
    return None if value is None else -to_decimal(value)


def is_zero_or_none(value):
    return value is None or value == 0


def year_month(when):
    when = to_utc_naive(when)
    return when.year, when.month


# ---------------------------------------------------------------------------
# Record events
# ---------------------------------------------------------------------------

def build_record_params(record_id, vehicle_id, home_currency, record_type, when_done,
                        odometer=None, amount_hc=None, kind_id=None, volume=None,
                        taxes_hc=None, fees_hc=None, is_maintenance=None):
    """Normalise a transactional-record change event.

    Fields that do not apply to the record type are dropped so that two
    events for the same record compare equal regardless of stray values.
    """
    if record_type not in RecordType.ALL:
        raise ValueError(f"Unknown record type: {record_type!r}")
    if not home_currency:
        raise ValueError(f"Record {record_id} has no home currency")
    if when_done is None:
        raise ValueError(f"Record {record_id} has no when_done timestamp")

    is_refuel = record_type == RecordType.REFUEL
    is_expense = record_type == RecordType.EXPENSE
    has_kind = record_type in (RecordType.EXPENSE, RecordType.REVENUE)

    return {
        'record_id': record_id,
        'vehicle_id': vehicle_id,
        'home_currency': home_currency.upper(),
        'record_type': record_type,
        'when_done': to_utc_naive(when_done),
        'odometer': to_decimal(odometer),
        'amount_hc': to_decimal(amount_hc),
        'kind_id': kind_id if has_kind else None,
        'volume': to_decimal(volume) if is_refuel else None,
        'taxes_hc': to_decimal(taxes_hc) if (is_refuel or is_expense) else None,
        'fees_hc': to_decimal(fees_hc) if is_expense else None,
        'is_maintenance': bool(is_maintenance) if is_expense else False,
    }


def record_params_from_model(record):
    """Build the change event for an ExpenseBase row and its subtype row."""
    kind_id = None
    volume = None
    is_maintenance = None
    if record.record_type == RecordType.REFUEL and record.refuel is not None:
        volume = record.refuel.volume
    elif record.record_type == RecordType.EXPENSE and record.expense is not None:
        kind_id = record.expense.kind_id
        is_maintenance = record.expense.is_maintenance
        if is_maintenance is None and record.expense.kind is not None:
            is_maintenance = record.expense.kind.is_maintenance
    elif record.record_type == RecordType.REVENUE and record.revenue is not None:
        kind_id = record.revenue.kind_id

    return build_record_params(
        record_id=record.id,
        vehicle_id=record.vehicle_id,
        home_currency=record.home_currency,
        record_type=record.record_type,
        when_done=record.when_done,
        odometer=record.odometer,
        amount_hc=record.total_price_hc,
        kind_id=kind_id,
        volume=volume,
        taxes_hc=record.tax_hc,
        fees_hc=record.fees_hc,
        is_maintenance=is_maintenance,
    )


def record_contributions(params):
    """Monthly-column -> value a single record adds to its summary rows.

    Counts are always 1; amounts may be None (nothing to add yet).
    """
    record_type = params['record_type']
    amount = params['amount_hc']

    if record_type == RecordType.REFUEL:
        return {
            'refuels_count': 1,
            'refuels_cost': amount,
            'refuels_volume': params['volume'],
            'refuels_taxes': params['taxes_hc'],
        }
    if record_type == RecordType.EXPENSE:
        contributions = {
            'expenses_count': 1,
            'expenses_cost': amount,
            'expenses_fees': params['fees_hc'],
            'expenses_taxes': params['taxes_hc'],
        }
        if params['is_maintenance']:
            contributions['maintenance_count'] = 1
            contributions['maintenance_cost'] = amount
        return contributions
    if record_type == RecordType.REVENUE:
        return {'revenues_count': 1, 'revenues_amount': amount}
    if record_type == RecordType.CHECKPOINT:
        return {'checkpoints_count': 1}
    # Travel points only move mileage and the date range
    return {}


def removal_contributions(params):
    return {column: negate(value) for column, value in record_contributions(params).items()}


def value_deltas(old_params, new_params):
    """Per-column deltas between two versions of the same (non-structural) record."""
    old_values = record_contributions(old_params)
    new_values = record_contributions(new_params)
    deltas = {}
    for column, new_value in new_values.items():
        if column in COUNT_COLUMNS:
            continue
        delta = value_delta(old_values.get(column), new_value)
        if not is_zero_or_none(delta):
            deltas[column] = delta
    return deltas


def is_structural_change(old_params, new_params):
    """True when an update moves the record across a summary grouping boundary."""
    return (
        old_params['vehicle_id'] != new_params['vehicle_id']
        or old_params['home_currency'] != new_params['home_currency']
        or old_params['record_type'] != new_params['record_type']
        or year_month(old_params['when_done']) != year_month(new_params['when_done'])
        or old_params['kind_id'] != new_params['kind_id']
        or old_params['is_maintenance'] != new_params['is_maintenance']
    )


# ---------------------------------------------------------------------------
# Travel events
# ---------------------------------------------------------------------------

def build_travel_params(travel_id, vehicle_id, status, created_at, first_dttm=None, last_dttm=None,
                        distance_km=None, first_odometer=None, last_odometer=None,
                        last_known_odometer=None):
    first_odometer = to_decimal(first_odometer)
    last_odometer = to_decimal(last_odometer)
    if last_known_odometer is None:
        last_known_odometer = last_odometer if last_odometer is not None else first_odometer

    return {
        'travel_id': travel_id,
        'vehicle_id': vehicle_id,
        'status': status if status is not None else TravelStatus.IN_PROGRESS,
        'first_dttm': to_utc_naive(first_dttm),
        'last_dttm': to_utc_naive(last_dttm),
        'created_at': to_utc_naive(created_at),
        'distance_km': to_decimal(distance_km),
        'first_odometer': first_odometer,
        'last_odometer': last_odometer,
        'last_known_odometer': to_decimal(last_known_odometer),
    }


def travel_params_from_model(travel):
    return build_travel_params(
        travel_id=travel.id,
        vehicle_id=travel.vehicle_id,
        status=travel.status,
        created_at=travel.created_at,
        first_dttm=travel.first_dttm,
        last_dttm=travel.last_dttm,
        distance_km=travel.distance_km,
        first_odometer=travel.first_odometer,
        last_odometer=travel.last_odometer,
    )


def is_countable_travel(params):
    return params['status'] >= TravelStatus.COMPLETED


def travel_month(params):
    """(year, month) a travel is bucketed into: first movement, else creation."""
    return year_month(params['first_dttm'] or params['created_at'])


def travel_distance(params):
    """Entered distance, else the odometer span floored at zero."""
    if params['distance_km'] is not None:
        return params['distance_km']
    first, last = params['first_odometer'], params['last_odometer']
    if first is not None and last is not None and last > first:
        return last - first
    return Decimal('0')


def is_structural_travel_change(old_params, new_params):
    return (
        old_params['vehicle_id'] != new_params['vehicle_id']
        or travel_month(old_params) != travel_month(new_params)
        or is_countable_travel(old_params) != is_countable_travel(new_params)
    )

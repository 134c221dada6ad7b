from extensions import db
from datetime import datetime


def _counter():
    return db.Column(db.Integer, nullable=False, default=0, server_default='0')


def _amount():
    return db.Column(db.Numeric(19, 4), nullable=False, default=0, server_default='0')


class CarTotalSummary(db.Model):
    """All-time totals for one vehicle in one home currency (maintained by CarStatsService)"""
    __tablename__ = 'car_total_summaries'

    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), primary_key=True)
    home_currency = db.Column(db.String(3), primary_key=True)

    # Vehicle-wide, 0 while this currency has no active records
    latest_known_mileage = _amount()

    latest_refuel_id = db.Column(db.Integer)
    latest_expense_id = db.Column(db.Integer)
    latest_revenue_id = db.Column(db.Integer)
    latest_travel_id = db.Column(db.Integer)

    total_refuels_count = _counter()
    total_expenses_count = _counter()
    total_revenues_count = _counter()
    total_checkpoints_count = _counter()
    total_maintenance_count = _counter()
    total_travels_count = _counter()

    refuels_taxes = _amount()
    total_refuels_cost = _amount()
    total_refuels_volume = _amount()
    expenses_fees = _amount()
    expenses_taxes = _amount()
    total_expenses_cost = _amount()
    total_maintenance_cost = _amount()
    total_revenues_amount = _amount()
    total_travels_distance = _amount()

    # Consumption baseline: the chronologically first active refuel
    first_refuel_id = db.Column(db.Integer)
    first_refuel_odometer = db.Column(db.Numeric(19, 4))
    first_refuel_volume = db.Column(db.Numeric(19, 4))
    consumption_volume = _amount()
    consumption_distance = _amount()

    first_record_at = db.Column(db.DateTime)
    last_record_at = db.Column(db.DateTime)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<CarTotalSummary {self.vehicle_id} {self.home_currency}: refuels={self.total_refuels_count} expenses={self.total_expenses_count}>'


class CarMonthlySummary(db.Model):
    """Totals for one vehicle, home currency and calendar month"""
    __tablename__ = 'car_monthly_summaries'

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), nullable=False)
    home_currency = db.Column(db.String(3), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)  # 1-12

    # Lowest / highest odometer recorded this month, NULL when none
    start_mileage = db.Column(db.Numeric(19, 4))
    end_mileage = db.Column(db.Numeric(19, 4))

    refuels_count = _counter()
    expenses_count = _counter()
    revenues_count = _counter()
    checkpoints_count = _counter()
    maintenance_count = _counter()
    travels_count = _counter()

    refuels_taxes = _amount()
    refuels_cost = _amount()
    refuels_volume = _amount()
    expenses_fees = _amount()
    expenses_taxes = _amount()
    expenses_cost = _amount()
    maintenance_cost = _amount()
    revenues_amount = _amount()
    travels_distance = _amount()

    # refuels_volume, minus the first refuel's volume in the first refuel month
    consumption_volume = _amount()
    is_first_refuel_month = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())

    first_record_at = db.Column(db.DateTime)
    last_record_at = db.Column(db.DateTime)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.Index('idx_car_monthly_summaries_vehicle_currency', 'vehicle_id', 'home_currency'),
        db.UniqueConstraint('vehicle_id', 'home_currency', 'year', 'month', name='unique_vehicle_currency_month'),
    )

    def __repr__(self):
        return f'<CarMonthlySummary {self.vehicle_id} {self.home_currency} {self.year:04d}-{self.month:02d}>'

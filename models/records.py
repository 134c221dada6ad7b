from extensions import db
from datetime import datetime


RECORD_STATUS_ACTIVE = 100


class RecordType:
    """Values of expense_bases.record_type"""
    REFUEL = 1
    EXPENSE = 2
    CHECKPOINT = 3
    TRAVEL_POINT = 4
    REVENUE = 5

    ALL = (REFUEL, EXPENSE, CHECKPOINT, TRAVEL_POINT, REVENUE)


class ExpenseBase(db.Model):
    """
    Common part of every transactional record (refuel, expense, revenue,
    checkpoint, travel point).  Amounts ending in _hc are in home currency and
    stay NULL until the conversion has been resolved.
    """
    __tablename__ = 'expense_bases'

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), nullable=False)
    record_type = db.Column(db.Integer, nullable=False)
    home_currency = db.Column(db.String(3), nullable=False)  # ISO 4217

    when_done = db.Column(db.DateTime, nullable=False)
    odometer = db.Column(db.Numeric(19, 4))  # km

    total_price = db.Column(db.Numeric(19, 4))  # paid currency
    total_price_hc = db.Column(db.Numeric(19, 4))
    fees_hc = db.Column(db.Numeric(19, 4))
    tax_hc = db.Column(db.Numeric(19, 4))

    status = db.Column(db.Integer, nullable=False, default=RECORD_STATUS_ACTIVE)
    removed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Subtype rows
    refuel = db.relationship('Refuel', uselist=False, backref='base', cascade='all, delete-orphan')
    expense = db.relationship('Expense', uselist=False, backref='base', cascade='all, delete-orphan')
    revenue = db.relationship('Revenue', uselist=False, backref='base', cascade='all, delete-orphan')

    __table_args__ = (
        db.Index('idx_expense_bases_vehicle_currency_when', 'vehicle_id', 'home_currency', 'when_done'),
    )

    @property
    def is_active(self):
        return self.status == RECORD_STATUS_ACTIVE and self.removed_at is None

    def __repr__(self):
        return f'<ExpenseBase {self.id} type={self.record_type} {self.when_done}: {self.total_price_hc} {self.home_currency}>'


class Refuel(db.Model):
    __tablename__ = 'refuels'

    id = db.Column(db.Integer, db.ForeignKey('expense_bases.id'), primary_key=True)
    volume = db.Column(db.Numeric(19, 4))  # Litres
    price_per_volume = db.Column(db.Numeric(19, 4))
    is_full_tank = db.Column(db.Boolean, default=False)

    def __repr__(self):
        return f'<Refuel {self.id}: {self.volume}L>'


class Expense(db.Model):
    __tablename__ = 'expenses'

    id = db.Column(db.Integer, db.ForeignKey('expense_bases.id'), primary_key=True)
    kind_id = db.Column(db.Integer, db.ForeignKey('expense_kinds.id'), nullable=False)
    labor_cost = db.Column(db.Numeric(19, 4))
    parts_cost = db.Column(db.Numeric(19, 4))
    # Copied from the kind when the record is written, so later edits of the
    # kind do not reclassify historical totals
    is_maintenance = db.Column(db.Boolean)

    kind = db.relationship('ExpenseKind')

    def __repr__(self):
        return f'<Expense {self.id}: kind={self.kind_id}>'


class Revenue(db.Model):
    __tablename__ = 'revenues'

    id = db.Column(db.Integer, db.ForeignKey('expense_bases.id'), primary_key=True)
    kind_id = db.Column(db.Integer, db.ForeignKey('revenue_kinds.id'), nullable=False)
    amount = db.Column(db.Numeric(19, 4))  # paid currency

    kind = db.relationship('RevenueKind')

    def __repr__(self):
        return f'<Revenue {self.id}: kind={self.kind_id}>'

from extensions import db


class CarTotalExpense(db.Model):
    """All-time expense count/amount per expense kind"""
    __tablename__ = 'car_total_expenses'

    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), primary_key=True)
    home_currency = db.Column(db.String(3), primary_key=True)
    kind_id = db.Column(db.Integer, db.ForeignKey('expense_kinds.id'), primary_key=True)
    records_count = db.Column(db.Integer, nullable=False, default=0, server_default='0')
    amount = db.Column(db.Numeric(19, 4), nullable=False, default=0, server_default='0')

    def __repr__(self):
        return f'<CarTotalExpense {self.vehicle_id} {self.home_currency} kind={self.kind_id}: {self.records_count}>'


class CarMonthlyExpense(db.Model):
    __tablename__ = 'car_monthly_expenses'

    monthly_summary_id = db.Column(db.Integer, db.ForeignKey('car_monthly_summaries.id'), primary_key=True)
    kind_id = db.Column(db.Integer, db.ForeignKey('expense_kinds.id'), primary_key=True)
    records_count = db.Column(db.Integer, nullable=False, default=0, server_default='0')
    amount = db.Column(db.Numeric(19, 4), nullable=False, default=0, server_default='0')

    def __repr__(self):
        return f'<CarMonthlyExpense {self.monthly_summary_id} kind={self.kind_id}: {self.records_count}>'


class CarTotalRevenue(db.Model):
    """All-time revenue count/amount per revenue kind"""
    __tablename__ = 'car_total_revenues'

    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), primary_key=True)
    home_currency = db.Column(db.String(3), primary_key=True)
    kind_id = db.Column(db.Integer, db.ForeignKey('revenue_kinds.id'), primary_key=True)
    records_count = db.Column(db.Integer, nullable=False, default=0, server_default='0')
    amount = db.Column(db.Numeric(19, 4), nullable=False, default=0, server_default='0')

    def __repr__(self):
        return f'<CarTotalRevenue {self.vehicle_id} {self.home_currency} kind={self.kind_id}: {self.records_count}>'


class CarMonthlyRevenue(db.Model):
    __tablename__ = 'car_monthly_revenues'

    monthly_summary_id = db.Column(db.Integer, db.ForeignKey('car_monthly_summaries.id'), primary_key=True)
    kind_id = db.Column(db.Integer, db.ForeignKey('revenue_kinds.id'), primary_key=True)
    records_count = db.Column(db.Integer, nullable=False, default=0, server_default='0')
    amount = db.Column(db.Numeric(19, 4), nullable=False, default=0, server_default='0')

    def __repr__(self):
        return f'<CarMonthlyRevenue {self.monthly_summary_id} kind={self.kind_id}: {self.records_count}>'

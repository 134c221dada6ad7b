from extensions import db


class ExpenseKind(db.Model):
    """Expense category; is_maintenance marks kinds counted as maintenance"""
    __tablename__ = 'expense_kinds'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)  # Oil change, Tires, Parking
    is_maintenance = db.Column(db.Boolean, nullable=False, default=False)

    def __repr__(self):
        return f'<ExpenseKind {self.name}>'


class RevenueKind(db.Model):
    __tablename__ = 'revenue_kinds'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)  # Rideshare, Delivery, Mileage reimbursement

    def __repr__(self):
        return f'<RevenueKind {self.name}>'

from extensions import db
from datetime import datetime, timezone


class Vehicle(db.Model):
    __tablename__ = 'vehicles'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100))  # Vauxhall Zafira, Audi A6
    make = db.Column(db.String(50))
    model = db.Column(db.String(50))
    year = db.Column(db.Integer)
    registration = db.Column(db.String(20))  # VRN
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None), onupdate=lambda: datetime.now(timezone.utc).replace(tzinfo=None))

    # Relationships
    records = db.relationship('ExpenseBase', backref='vehicle', lazy=True)
    travels = db.relationship('Travel', backref='vehicle', lazy=True)

    def __repr__(self):
        return f'<Vehicle {self.id}: {self.name}>'

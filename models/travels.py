from extensions import db
from datetime import datetime


class TravelStatus:
    IN_PROGRESS = 100
    COMPLETED = 200
    SUBMITTED = 300
    APPROVED = 400
    REJECTED = 500
    REIMBURSED = 600


class Travel(db.Model):
    """
    A trip.  Travels carry no money, so they count toward every currency row
    of the vehicle's summaries once their status reaches COMPLETED.
    """
    __tablename__ = 'travels'

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), nullable=False)
    status = db.Column(db.Integer, nullable=False, default=TravelStatus.IN_PROGRESS)

    first_odometer = db.Column(db.Numeric(19, 4))
    last_odometer = db.Column(db.Numeric(19, 4))
    distance_km = db.Column(db.Numeric(19, 4))  # Entered or calculated trip distance

    first_dttm = db.Column(db.DateTime)
    last_dttm = db.Column(db.DateTime)

    purpose = db.Column(db.String(64))
    destination = db.Column(db.String(128))

    removed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index('idx_travels_vehicle', 'vehicle_id'),
    )

    def __repr__(self):
        return f'<Travel {self.id}: vehicle={self.vehicle_id} status={self.status} {self.distance_km}km>'

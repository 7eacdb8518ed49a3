from decimal import Decimal
from models.db import db

class CourtOccupancy(db.Model):
    __tablename__ = "court_occupancy"

    id = db.Column(db.Integer, primary_key=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)
    court_id = db.Column(db.Integer, db.ForeignKey("courts.id"), nullable=False)
    date = db.Column(db.Date, nullable=False)
    hour = db.Column(db.Integer, nullable=False)
    day_of_week = db.Column(db.Integer, nullable=False)

    total_bookings = db.Column(db.Integer, nullable=False, default=0)
    total_revenue = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    occupancy_rate = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint("court_id", "date", "hour", name="uq_court_occupancy_slot"),
    )

from datetime import datetime
from decimal import Decimal
from models.db import db

COURT_ACTIVE = "active"
COURT_MAINTENANCE = "maintenance"
COURT_STATUSES = (COURT_ACTIVE, COURT_MAINTENANCE)

class Court(db.Model):
    __tablename__ = "courts"

    id = db.Column(db.Integer, primary_key=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)

    hourly_rate = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    capacity = db.Column(db.Integer, nullable=False, default=4)

    status = db.Column(db.String(20), nullable=False, default=COURT_ACTIVE)
    # status values: active, maintenance
    is_outdoor = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    venue = db.relationship("Venue", back_populates="courts")

    __table_args__ = (
        db.UniqueConstraint("venue_id", "name", name="uq_court_name_per_venue"),
    )

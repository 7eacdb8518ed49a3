from datetime import datetime
from models.db import db

class Venue(db.Model):
    __tablename__ = "venues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    # used for the rain-check forecast lookup
    city = db.Column(db.String(120), nullable=True)
    # IANA name; NULL falls back to VENUE_TIMEZONE
    timezone = db.Column(db.String(64), nullable=True)

    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    courts = db.relationship("Court", back_populates="venue", order_by="Court.id")

from datetime import datetime
from models.db import db

PURPOSE_BOOKING = "BOOKING"
PURPOSE_TOPUP = "TOPUP"

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    purpose = db.Column(db.String(20), nullable=False, default=PURPOSE_BOOKING)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)

    provider = db.Column(db.String(20), nullable=False, default="STRIPE")
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="EUR")

    status = db.Column(db.String(20), nullable=False, default="INIT")  # INIT, PAID, FAILED, REFUNDED
    # checkout session id; the only reference provider events carry back
    provider_payment_id = db.Column(db.String(255), nullable=True, unique=True, index=True)
    provider_intent_id = db.Column(db.String(255), nullable=True, index=True)
    checkout_url = db.Column(db.String(2048), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)

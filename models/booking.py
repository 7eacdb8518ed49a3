from datetime import datetime
from models.db import db

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"

METHOD_WALLET = "wallet"
METHOD_PROVIDER = "provider"
METHOD_MANUAL = "manual"  # marked paid by a venue admin

REFUND_CREDITED = "credited"  # money went back to the venue wallet
REFUND_REFUNDED = "refunded"  # money went back through the payment provider

RAIN_CHECK_REASON = "rain_check"


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    court_id = db.Column(db.Integer, db.ForeignKey("courts.id"), nullable=False, index=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    booking_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    attendees = db.Column(db.Integer, nullable=False, default=1)
    notes = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_CONFIRMED)
    # status values: confirmed, cancelled
    payment_status = db.Column(db.String(20), nullable=False, default=PAYMENT_PENDING)
    # payment_status values: pending, paid, failed, refunded
    payment_method = db.Column(db.String(20), nullable=True)
    refund_status = db.Column(db.String(20), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    # a NULL cancelled_at is what keeps the slot held
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancellation_reason = db.Column(db.String(120), nullable=True)

    weather_checked_at = db.Column(db.DateTime, nullable=True)
    weather_forecast_json = db.Column(db.Text, nullable=True)

    court = db.relationship("Court")
    shares = db.relationship("BookingShare", back_populates="booking", order_by="BookingShare.share_index")

    __table_args__ = (
        db.CheckConstraint("end_time > start_time", name="ck_booking_valid_interval"),
        db.Index("ix_bookings_court_date", "court_id", "booking_date"),
    )

    @property
    def is_held(self) -> bool:
        return self.cancelled_at is None

    def starts_at(self) -> datetime:
        return datetime.combine(self.booking_date, self.start_time)


class BookingShare(db.Model):
    __tablename__ = "booking_shares"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)

    share_amount = db.Column(db.Numeric(10, 2), nullable=False)
    service_fee = db.Column(db.Numeric(10, 2), nullable=False)
    total_owed = db.Column(db.Numeric(10, 2), nullable=False)
    share_index = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    booking = db.relationship("Booking", back_populates="shares")

    __table_args__ = (
        db.UniqueConstraint("booking_id", "share_index", name="uq_booking_share_index"),
    )

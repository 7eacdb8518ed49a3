from datetime import datetime, date
from decimal import Decimal
from models.db import db

CATEGORY_REVENUE = "revenue"
CATEGORY_REFUND = "refund"
CATEGORY_REVERSAL = "reversal"

class LedgerEntry(db.Model):
    """Append-only accounting row. Corrections are new offsetting entries."""

    __tablename__ = "ledger_entries"

    id = db.Column(db.Integer, primary_key=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=True, index=True)

    description = db.Column(db.String(255), nullable=False)
    debit = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    credit = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    transaction_date = db.Column(db.Date, nullable=False, default=date.today)
    category = db.Column(db.String(40), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="completed")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

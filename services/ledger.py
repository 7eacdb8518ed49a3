from datetime import date
from decimal import Decimal

from models import db
from models.ledger import LedgerEntry, CATEGORY_REVENUE, CATEGORY_REFUND, CATEGORY_REVERSAL
from services.pricing import to_money


def record_revenue(booking, description: str = None) -> LedgerEntry:
    entry = LedgerEntry(
        venue_id=booking.venue_id,
        booking_id=booking.id,
        description=description or f"Booking {booking.id}",
        credit=to_money(booking.total_price),
        debit=Decimal("0.00"),
        transaction_date=date.today(),
        category=CATEGORY_REVENUE,
        status="completed",
    )
    db.session.add(entry)
    return entry


def record_reversal(booking) -> LedgerEntry:
    """Offset the revenue credit of a booking released before it was ever paid."""
    entry = LedgerEntry(
        venue_id=booking.venue_id,
        booking_id=booking.id,
        description=f"Cancelled unpaid booking {booking.id}",
        credit=Decimal("0.00"),
        debit=to_money(booking.total_price),
        transaction_date=date.today(),
        category=CATEGORY_REVERSAL,
        status="completed",
    )
    db.session.add(entry)
    return entry


def record_refund(booking, amount, note: str) -> LedgerEntry:
    entry = LedgerEntry(
        venue_id=booking.venue_id,
        booking_id=booking.id,
        description=f"{note} - booking {booking.id}",
        credit=Decimal("0.00"),
        debit=to_money(amount),
        transaction_date=date.today(),
        category=CATEGORY_REFUND,
        status="completed",
    )
    db.session.add(entry)
    return entry


def venue_totals(venue_id: int):
    credit_sum, debit_sum = (
        db.session.query(
            db.func.coalesce(db.func.sum(LedgerEntry.credit), 0),
            db.func.coalesce(db.func.sum(LedgerEntry.debit), 0),
        )
        .filter(LedgerEntry.venue_id == venue_id)
        .one()
    )
    credit_sum, debit_sum = to_money(credit_sum), to_money(debit_sum)
    return {"credit": credit_sum, "debit": debit_sum, "net": credit_sum - debit_sum}

import logging
from decimal import Decimal

from models import db
from models.booking import Booking
from models.occupancy import CourtOccupancy
from services.pricing import to_money

logger = logging.getLogger(__name__)


def _adjust(booking: Booking, day, hour: int, delta: int):
    amount = to_money(booking.total_price)
    row = CourtOccupancy.query.filter_by(court_id=booking.court_id, date=day, hour=hour).first()

    if row is None:
        if delta < 0:
            return None
        row = CourtOccupancy(
            venue_id=booking.venue_id,
            court_id=booking.court_id,
            date=day,
            hour=hour,
            day_of_week=(day.weekday() + 1) % 7,  # 0 = Sunday
            total_bookings=0,
            total_revenue=Decimal("0.00"),
        )
        db.session.add(row)

    if delta < 0:
        row.total_bookings = max(0, (row.total_bookings or 0) - 1)
        row.total_revenue = max(Decimal("0.00"), to_money(row.total_revenue or 0) - amount)
    else:
        row.total_bookings = (row.total_bookings or 0) + 1
        row.total_revenue = to_money(row.total_revenue or 0) + amount
    row.occupancy_rate = 100 if row.total_bookings > 0 else 0
    return row


def update_occupancy_history(booking_id: int):
    """
    Count a booking in the hourly occupancy history, or take it back out
    once it is cancelled. Runs after the booking commit, never inside it.
    """
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        logger.warning("Occupancy update skipped, booking %s not found", booking_id)
        return None

    delta = -1 if booking.cancelled_at is not None else 1
    row = _adjust(booking, booking.booking_date, booking.start_time.hour, delta)
    db.session.commit()
    return row


def move_occupancy_history(booking_id: int, old_date, old_start):
    """Move a booking's count from the slot it used to hold to its current one."""
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        logger.warning("Occupancy move skipped, booking %s not found", booking_id)
        return None

    _adjust(booking, old_date, old_start.hour, -1)
    row = _adjust(booking, booking.booking_date, booking.start_time.hour, 1)
    db.session.commit()
    return row

"""
Slot conflict checking.

Intervals are half-open ``[start, end)`` in minutes since midnight, so a
booking ending at 10:00 never conflicts with one starting at 10:00.
Booking dates and times are wall-clock times at the venue; timestamps
such as ``created_at`` are naive UTC.
"""
from datetime import time, date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app

from models.booking import Booking
from services.errors import ValidationError


def venue_zone(name: str = None) -> ZoneInfo:
    name = name or current_app.config.get("VENUE_TIMEZONE", "UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {name!r}")


def venue_local_now(tz_name: str = None, now: datetime = None) -> datetime:
    """Naive wall-clock time at the venue for a naive UTC ``now``."""
    now = now or datetime.utcnow()
    local = now.replace(tzinfo=timezone.utc).astimezone(venue_zone(tz_name))
    return local.replace(tzinfo=None)


def to_minutes(value) -> int:
    """Minutes since midnight for a ``datetime.time`` or an ``HH:MM[:SS]`` string."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) not in (2, 3):
            raise ValidationError(f"Invalid time: {value!r}. Use HH:MM")
        try:
            hours, minutes = int(parts[0]), int(parts[1])
        except ValueError:
            raise ValidationError(f"Invalid time: {value!r}. Use HH:MM")
        if not (0 <= hours <= 24 and 0 <= minutes < 60) or (hours == 24 and minutes):
            raise ValidationError(f"Invalid time: {value!r}. Use HH:MM")
        return hours * 60 + minutes
    raise ValidationError(f"Invalid time: {value!r}")


def parse_time(value) -> time:
    if isinstance(value, time):
        return value
    minutes = to_minutes(value)
    if minutes >= 24 * 60:
        raise ValidationError("Time must be before 24:00")
    return time(minutes // 60, minutes % 60)


def validate_interval(start, end):
    start_min, end_min = to_minutes(start), to_minutes(end)
    if end_min <= start_min:
        raise ValidationError("end_time must be after start_time")
    return start_min, end_min


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and a_end > b_start


def held_bookings(court_id: int, booking_date: date, exclude_booking_id=None):
    q = Booking.query.filter(
        Booking.court_id == court_id,
        Booking.booking_date == booking_date,
        Booking.cancelled_at.is_(None),
    )
    if exclude_booking_id is not None:
        q = q.filter(Booking.id != exclude_booking_id)
    return q.order_by(Booking.start_time.asc()).all()


def has_conflict(court_id: int, booking_date: date, start, end, exclude_booking_id=None) -> bool:
    start_min, end_min = validate_interval(start, end)
    for existing in held_bookings(court_id, booking_date, exclude_booking_id):
        if overlaps(start_min, end_min, to_minutes(existing.start_time), to_minutes(existing.end_time)):
            return True
    return False


def day_schedule(court_id: int, booking_date: date):
    return [
        {
            "booking_id": b.id,
            "start_time": b.start_time.strftime("%H:%M"),
            "end_time": b.end_time.strftime("%H:%M"),
        }
        for b in held_bookings(court_id, booking_date)
    ]

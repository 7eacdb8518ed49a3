"""
Rain-check sweeper.

Looks at outdoor bookings starting within the rain-check window, asks the
weather service about the venue's city and cancels (crediting the wallet
for paid bookings) when rain is forecast. Every booking is stamped with
``weather_checked_at`` so it is checked at most once.
"""
import json
import logging
from datetime import datetime, timedelta

from flask import current_app

from models import db
from models.booking import Booking, STATUS_CONFIRMED, STATUS_CANCELLED, PAYMENT_PAID, RAIN_CHECK_REASON
from models.court import Court
from models.venue import Venue
from models.user import User
from services import ledger
from services.booking import credit_back_to_wallet, UNPAID_STATUSES
from services.occupancy import update_occupancy_history
from services.scheduling import venue_local_now
from utils.audit import log_event
from utils.emailer import send_booking_cancellation
from utils.side_effects import run_isolated
from utils.weather import get_forecast, WeatherServiceError

logger = logging.getLogger(__name__)


def due_bookings(now: datetime, window_hours: int):
    """
    Unchecked, held, outdoor bookings starting in ``[now, now + window)``,
    with ``now`` (naive UTC) read as wall-clock time at each venue.
    """
    window = timedelta(hours=window_hours)
    # wide date filter; UTC offsets are settled per venue below
    rows = (
        db.session.query(Booking, Venue.city, Venue.timezone)
        .join(Court, Booking.court_id == Court.id)
        .join(Venue, Booking.venue_id == Venue.id)
        .filter(
            Booking.status == STATUS_CONFIRMED,
            Booking.cancelled_at.is_(None),
            Booking.weather_checked_at.is_(None),
            Court.is_outdoor.is_(True),
            Booking.booking_date >= (now - timedelta(days=1)).date(),
            Booking.booking_date <= (now + window + timedelta(days=1)).date(),
        )
        .order_by(Booking.booking_date.asc(), Booking.start_time.asc())
        .all()
    )

    due = []
    local_now = {}
    for booking, city, tz_name in rows:
        if tz_name not in local_now:
            local_now[tz_name] = venue_local_now(tz_name, now)
        if local_now[tz_name] <= booking.starts_at() < local_now[tz_name] + window:
            due.append((booking, city))
    return due


def sweep(now: datetime = None, forecast=get_forecast) -> int:
    """Run one rain-check cycle and return how many bookings were committed."""
    now = now or datetime.utcnow()
    window = current_app.config.get("RAIN_CHECK_WINDOW_HOURS", 24)

    candidates = [(b.id, city) for b, city in due_bookings(now, window)]
    db.session.rollback()

    forecasts = {}
    processed = 0
    cancelled = []

    for booking_id, city in candidates:
        if not city:
            logger.warning("Rain check skipped for booking %s: venue has no city", booking_id)
            continue

        if city not in forecasts:
            try:
                forecasts[city] = forecast(city)
            except WeatherServiceError as exc:
                logger.warning("Rain check skipped for %s: %s", city, exc)
                forecasts[city] = None
        current = forecasts[city]
        if current is None:
            continue

        try:
            rained_off = _check_one(booking_id, current, now)
        except Exception:
            db.session.rollback()
            logger.exception("Rain check failed for booking %s", booking_id)
            continue
        if rained_off is None:
            continue

        processed += 1
        if rained_off:
            cancelled.append(booking_id)

    for booking_id in cancelled:
        booking = db.session.get(Booking, booking_id)
        user = db.session.get(User, booking.user_id)
        if user is not None:
            run_isolated("rain-check email", send_booking_cancellation, booking, user)
        run_isolated("occupancy history", update_occupancy_history, booking_id)

    logger.info("Rain check processed %s of %s bookings (%s cancelled)", processed, len(candidates), len(cancelled))
    return processed


def _check_one(booking_id: int, current, now: datetime):
    """
    Apply one forecast to one booking in its own transaction.

    Returns True when cancelled, False when only stamped, None when another
    sweep got there first.
    """
    booking = Booking.query.filter_by(id=booking_id).with_for_update().first()
    if booking is None or booking.weather_checked_at is not None or booking.cancelled_at is not None:
        db.session.rollback()
        return None

    if current.is_raining:
        was_paid = booking.payment_status == PAYMENT_PAID
        if was_paid:
            credit_back_to_wallet(booking, "Rain-check refund")
        elif booking.payment_status in UNPAID_STATUSES:
            ledger.record_reversal(booking)
        booking.status = STATUS_CANCELLED
        booking.cancelled_at = now
        booking.cancellation_reason = RAIN_CHECK_REASON
        log_event("RAIN_CHECK_CANCEL", entity="booking", entity_id=booking.id, venue_id=booking.venue_id,
                  metadata={"credited": was_paid, "amount": booking.total_price if was_paid else None,
                            "forecast": current.details})

    booking.weather_checked_at = now
    booking.weather_forecast_json = json.dumps(current.details, default=str)
    db.session.commit()
    return bool(current.is_raining)

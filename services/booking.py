"""
Booking transaction orchestrator.

A booking, its ledger credit, its payment shares, its open match and (when
paid from the wallet) the wallet debit are committed as one unit of work.
The slot conflict check is repeated inside that unit of work while the
court row is locked, and on PostgreSQL an exclusion constraint catches any
insert that still races past it.

Provider charges, e-mail and occupancy history run after the commit and
can fail without undoing the booking.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import (
    Booking, BookingShare,
    STATUS_CONFIRMED, STATUS_CANCELLED,
    PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_FAILED, PAYMENT_REFUNDED,
    METHOD_WALLET, METHOD_PROVIDER, METHOD_MANUAL,
    REFUND_CREDITED, REFUND_REFUNDED,
)
from models.court import Court, COURT_ACTIVE
from models.match import OpenMatch, MatchPlayer
from models.payment import Payment, PURPOSE_BOOKING
from models.user import User
from models.venue import Venue
from services import ledger, wallet
from services.errors import (
    ValidationError, NotFoundError, ConflictError, PaymentProviderError,
)
from services.occupancy import update_occupancy_history, move_occupancy_history
from services.pricing import price, split_shares, to_money
from services.scheduling import has_conflict, parse_time, validate_interval, venue_local_now, to_minutes
from utils import payment_provider
from utils.audit import log_event
from utils.emailer import send_booking_confirmation, send_booking_cancellation
from utils.side_effects import run_isolated

logger = logging.getLogger(__name__)

UNPAID_STATUSES = (PAYMENT_PENDING, PAYMENT_FAILED)


@dataclass
class BookingResult:
    booking: Booking
    shares: List[BookingShare] = field(default_factory=list)
    match: Optional[OpenMatch] = None
    payment: Optional[Payment] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def checkout_url(self):
        return self.payment.checkout_url if self.payment else None


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD")


def _parse_attendees(attendees) -> int:
    try:
        value = int(attendees)
    except (TypeError, ValueError):
        raise ValidationError("attendees must be a number")
    if value < 1:
        raise ValidationError("attendees must be at least 1")
    return value


def _venue_now(venue_id: int) -> datetime:
    venue = db.session.get(Venue, venue_id)
    return venue_local_now(venue.timezone if venue else None)


def _lock_booking(booking_id: int) -> Booking:
    booking = Booking.query.filter_by(id=booking_id).with_for_update().first()
    if booking is None:
        raise NotFoundError("Booking")
    return booking


def create_booking(
    court_id: int,
    requester_id: int,
    booking_date,
    start,
    end,
    attendees=1,
    split_payment: bool = False,
    public_match: bool = False,
    looking_for_players: int = 3,
    pay_with_wallet: bool = False,
    notes: str = None,
) -> BookingResult:
    attendees = _parse_attendees(attendees)
    booking_date = parse_date(booking_date)
    start_t, end_t = parse_time(start), parse_time(end)
    validate_interval(start_t, end_t)

    court = db.session.get(Court, court_id)
    if court is None:
        raise NotFoundError("Court")
    if court.status != COURT_ACTIVE:
        raise ValidationError("Court is under maintenance")
    if attendees > court.capacity:
        raise ValidationError(f"Court holds at most {court.capacity} players")
    if datetime.combine(booking_date, start_t) <= _venue_now(court.venue_id):
        raise ValidationError("Cannot book past/started slots")

    total = price(court.hourly_rate, start_t, end_t)
    if total <= 0:
        raise ValidationError("Court has no price for this slot")

    result = None
    try:
        # serialises concurrent bookings of the same court
        Court.query.filter_by(id=court.id).with_for_update().one()
        if has_conflict(court.id, booking_date, start_t, end_t):
            raise ConflictError()

        booking = Booking(
            court_id=court.id,
            venue_id=court.venue_id,
            user_id=requester_id,
            booking_date=booking_date,
            start_time=start_t,
            end_time=end_t,
            total_price=total,
            attendees=attendees,
            notes=(notes or "").strip()[:255] or None,
            status=STATUS_CONFIRMED,
            payment_status=PAYMENT_PENDING,
        )
        db.session.add(booking)
        db.session.flush()
        result = BookingResult(booking=booking)

        if public_match:
            result.match = _open_match(booking, looking_for_players)

        if split_payment:
            fee = current_app.config.get("SPLIT_SERVICE_FEE", "0.25")
            for quote in split_shares(total, attendees, fee):
                share = BookingShare(
                    booking_id=booking.id,
                    share_index=quote.share_index,
                    share_amount=quote.share_amount,
                    service_fee=quote.service_fee,
                    total_owed=quote.total_owed,
                )
                db.session.add(share)
                result.shares.append(share)

        ledger.record_revenue(booking)

        if pay_with_wallet:
            wallet.debit(requester_id, court.venue_id, total, "Booking payment", reference=booking.id)
            booking.payment_status = PAYMENT_PAID
            booking.payment_method = METHOD_WALLET

        log_event(
            "BOOKING_CREATE", user_id=requester_id, entity="booking", entity_id=booking.id,
            venue_id=booking.venue_id,
            metadata={
                "court_id": court.id,
                "date": booking_date.isoformat(),
                "start": start_t.strftime("%H:%M"),
                "end": end_t.strftime("%H:%M"),
                "price": total,
                "payment_method": booking.payment_method,
            },
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info("Booking insert for court %s on %s lost a race", court_id, booking_date)
        raise ConflictError()
    except Exception:
        db.session.rollback()
        raise

    booking = result.booking
    logger.info("Booking %s created on court %s (%s)", booking.id, booking.court_id, booking.payment_status)

    if booking.payment_status in UNPAID_STATUSES and payment_provider.is_configured():
        try:
            result.payment = _open_charge(booking, requester_id)
        except PaymentProviderError as exc:
            logger.warning("Booking %s committed without a checkout: %s", booking.id, exc.message)
            result.warnings.append(exc.message)

    _after_change(booking, send_booking_confirmation)
    return result


def _open_match(booking: Booking, looking_for_players) -> OpenMatch:
    try:
        seats = int(looking_for_players)
    except (TypeError, ValueError):
        raise ValidationError("looking_for_players must be a number")
    if seats < 1:
        raise ValidationError("looking_for_players must be at least 1")

    match = OpenMatch(
        booking_id=booking.id,
        venue_id=booking.venue_id,
        host_id=booking.user_id,
        looking_for_players=seats,
        is_public=True,
    )
    db.session.add(match)
    db.session.flush()
    db.session.add(MatchPlayer(match_id=match.id, user_id=booking.user_id, status="confirmed", team=1))
    return match


def _open_charge(booking: Booking, user_id: int) -> Payment:
    currency = current_app.config.get("CURRENCY", "EUR")
    payment = Payment(
        purpose=PURPOSE_BOOKING,
        booking_id=booking.id,
        user_id=user_id,
        venue_id=booking.venue_id,
        amount=booking.total_price,
        currency=currency,
        status="INIT",
    )
    db.session.add(payment)
    db.session.commit()

    try:
        charge = payment_provider.create_charge(
            booking.total_price,
            currency,
            metadata={"payment_id": payment.id, "booking_id": booking.id, "user_id": user_id},
            description=f"Court booking #{booking.id}",
        )
    except PaymentProviderError:
        payment.status = "FAILED"
        db.session.commit()
        raise

    payment.provider_payment_id = charge.payment_id
    payment.provider_intent_id = charge.intent_id
    payment.checkout_url = charge.checkout_url
    log_event("PAYMENT_SESSION_CREATED", user_id=user_id, entity="payment", entity_id=payment.id,
              venue_id=booking.venue_id, metadata={"provider_payment_id": charge.payment_id, "booking_id": booking.id})
    db.session.commit()
    return payment


def _after_change(booking: Booking, mailer):
    user = db.session.get(User, booking.user_id)
    if user is not None:
        run_isolated("booking email", mailer, booking, user)
    run_isolated("occupancy history", update_occupancy_history, booking.id)


def get_booking_for_user(booking_id: int, user_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if booking is None or booking.user_id != user_id:
        raise NotFoundError("Booking")
    return booking


def initiate_booking_payment(booking_id: int, user_id: int) -> Payment:
    booking = get_booking_for_user(booking_id, user_id)
    if booking.cancelled_at is not None:
        raise ValidationError("Booking is cancelled")
    if booking.payment_status not in UNPAID_STATUSES:
        raise ValidationError("Booking already paid")
    if not payment_provider.is_configured():
        raise PaymentProviderError("Payment provider not configured")
    return _open_charge(booking, user_id)


def pay_booking_with_wallet(booking_id: int, user_id: int) -> Booking:
    try:
        booking = _lock_booking(booking_id)
        if booking.user_id != user_id:
            raise NotFoundError("Booking")
        if booking.cancelled_at is not None:
            raise ValidationError("Booking is cancelled")
        if booking.payment_status not in UNPAID_STATUSES:
            raise ValidationError("Booking already paid")

        wallet.debit(user_id, booking.venue_id, booking.total_price, "Booking payment", reference=booking.id)
        booking.payment_status = PAYMENT_PAID
        booking.payment_method = METHOD_WALLET
        log_event("BOOKING_PAID_WALLET", user_id=user_id, entity="booking", entity_id=booking.id,
                  venue_id=booking.venue_id, metadata={"amount": booking.total_price})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return booking


def credit_back_to_wallet(booking: Booking, note: str):
    """
    Return a paid booking's full price to the requester's venue wallet.
    Caller holds the booking lock and commits.
    """
    amount = to_money(booking.total_price)
    wallet.credit(booking.user_id, booking.venue_id, amount, note, reference=booking.id)
    ledger.record_refund(booking, amount, note)
    booking.payment_status = PAYMENT_REFUNDED
    booking.refund_status = REFUND_CREDITED


def _mark_cancelled(booking: Booking, reason: str, now: datetime = None):
    booking.status = STATUS_CANCELLED
    booking.cancelled_at = now or datetime.utcnow()
    booking.cancellation_reason = reason


def cancel_booking(booking_id: int, actor_id: int, reason: str = None, enforce_cutoff: bool = True) -> Booking:
    """
    Release a booking. Paid bookings are refunded through ``refund_booking``;
    unpaid ones are cancelled and their revenue credit is reversed.
    """
    try:
        booking = _lock_booking(booking_id)
        if booking.cancelled_at is not None:
            raise ValidationError("Booking already cancelled")

        if enforce_cutoff:
            cutoff_hours = current_app.config.get("CANCEL_CUTOFF_HOURS", 12)
            if booking.starts_at() - _venue_now(booking.venue_id) < timedelta(hours=cutoff_hours):
                raise ValidationError(f"Cancellations close {cutoff_hours} hours before start")

        if booking.payment_status == PAYMENT_PAID:
            db.session.rollback()
            return refund_booking(booking_id, reason=reason or "Cancelled by player", processed_by=actor_id)

        if booking.payment_status in UNPAID_STATUSES:
            ledger.record_reversal(booking)
        _mark_cancelled(booking, reason or "Cancelled")
        log_event("BOOKING_CANCEL", user_id=actor_id, entity="booking", entity_id=booking.id,
                  venue_id=booking.venue_id, metadata={"reason": booking.cancellation_reason})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Booking %s cancelled by user %s", booking.id, actor_id)
    _after_change(booking, send_booking_cancellation)
    return booking


def refund_booking(booking_id: int, reason: str = None, processed_by: int = None, to_wallet: bool = False) -> Booking:
    """
    Refund a paid booking exactly once and release its slot.

    Wallet-paid bookings (or ``to_wallet=True``) go back to the wallet.
    Otherwise every row change is staged and flushed first and the provider
    refund is the last step before the commit; if it fails the booking
    stays paid and PaymentProviderError is raised. The provider call
    carries an idempotency key per booking, so retrying after a failed
    commit never refunds twice.
    """
    try:
        booking = _lock_booking(booking_id)
        if booking.payment_status != PAYMENT_PAID or booking.cancelled_at is not None:
            raise ValidationError("Booking is not refundable")

        reason = reason or "Refund requested"
        amount = to_money(booking.total_price)
        payment = None

        if to_wallet or booking.payment_method != METHOD_PROVIDER:
            credit_back_to_wallet(booking, "Booking refund")
        else:
            payment = (
                Payment.query
                .filter_by(booking_id=booking.id, status="PAID")
                .order_by(Payment.paid_at.desc())
                .first()
            )
            if payment is None or not payment.provider_intent_id:
                raise PaymentProviderError("No provider payment found for this booking")
            payment.status = "REFUNDED"
            payment.refunded_at = datetime.utcnow()
            ledger.record_refund(booking, amount, "Booking refund")
            booking.payment_status = PAYMENT_REFUNDED
            booking.refund_status = REFUND_REFUNDED

        _mark_cancelled(booking, reason)
        log_event("BOOKING_REFUND", user_id=processed_by, entity="booking", entity_id=booking.id,
                  venue_id=booking.venue_id,
                  metadata={"amount": amount, "refund_status": booking.refund_status, "reason": reason})
        db.session.flush()

        if payment is not None:
            refund_id = payment_provider.create_refund(
                payment.provider_intent_id, amount, idempotency_key=f"booking-refund-{booking.id}",
            )
            logger.info("Provider refund %s issued for booking %s", refund_id, booking.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    _after_change(booking, send_booking_cancellation)
    return booking


def move_booking(booking_id: int, new_date, new_start, actor_id: int = None) -> Booking:
    """
    Shift a booking to another start time (and optionally another date) on
    the same court. Duration and price stay as they are, and the booking's
    current slot does not count against the new one.
    """
    new_date = parse_date(new_date)
    start_t = parse_time(new_start)

    try:
        booking = _lock_booking(booking_id)
        if booking.cancelled_at is not None:
            raise ValidationError("Booking is cancelled")

        duration = to_minutes(booking.end_time) - to_minutes(booking.start_time)
        end_minutes = to_minutes(start_t) + duration
        if end_minutes >= 24 * 60:
            raise ValidationError("Booking would run past midnight")
        end_t = time(end_minutes // 60, end_minutes % 60)
        if datetime.combine(new_date, start_t) <= _venue_now(booking.venue_id):
            raise ValidationError("Cannot move to past/started slots")

        Court.query.filter_by(id=booking.court_id).with_for_update().one()
        if has_conflict(booking.court_id, new_date, start_t, end_t, exclude_booking_id=booking.id):
            raise ConflictError()

        old_date, old_start, old_end = booking.booking_date, booking.start_time, booking.end_time
        booking.booking_date = new_date
        booking.start_time = start_t
        booking.end_time = end_t
        # the new slot gets its own rain check
        booking.weather_checked_at = None
        booking.weather_forecast_json = None

        log_event("BOOKING_MOVE", user_id=actor_id, entity="booking", entity_id=booking.id,
                  venue_id=booking.venue_id,
                  metadata={
                      "from": f"{old_date.isoformat()} {old_start.strftime('%H:%M')}-{old_end.strftime('%H:%M')}",
                      "to": f"{new_date.isoformat()} {start_t.strftime('%H:%M')}-{end_t.strftime('%H:%M')}",
                  })
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Booking %s moved to %s %s by user %s", booking.id, new_date, start_t, actor_id)
    run_isolated("occupancy history", move_occupancy_history, booking.id, old_date, old_start)
    return booking


def mark_paid_manually(booking_id: int, admin_id: int) -> Booking:
    """
    Settle a pending or failed booking that was paid outside the system
    (cash at the desk, bank transfer). Bookings already settled are
    returned unchanged.
    """
    try:
        booking = _lock_booking(booking_id)
        if booking.cancelled_at is not None:
            raise ValidationError("Booking is cancelled")
        if booking.payment_status not in UNPAID_STATUSES:
            db.session.rollback()
            return booking

        previous = booking.payment_status
        booking.payment_status = PAYMENT_PAID
        booking.payment_method = METHOD_MANUAL
        log_event("BOOKING_MARKED_PAID", user_id=admin_id, entity="booking", entity_id=booking.id,
                  venue_id=booking.venue_id,
                  metadata={"amount": booking.total_price, "previous_status": previous})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Booking %s marked paid by admin %s", booking.id, admin_id)
    return booking

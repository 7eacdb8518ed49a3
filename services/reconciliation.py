"""
Payment provider event handling.

Events are matched to a Payment by the provider's own reference (checkout
session id or payment intent id), never by booking id, and every transition
is guarded so a replayed event changes nothing.
"""
import logging
from datetime import datetime

from models import db
from models.booking import (
    Booking, PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_FAILED, METHOD_PROVIDER,
)
from models.payment import Payment, PURPOSE_TOPUP
from services import ledger, wallet
from services.booking import credit_back_to_wallet
from services.errors import ReconciliationMismatch
from utils.audit import log_event

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
FAILED = "failed"
FAILURE_STATUSES = {FAILED, "expired", "canceled", "cancelled"}

# outcomes
PAID = "paid"
MARKED_FAILED = "failed"
CREDITED = "credited"
TOPUP_CREDITED = "topup_credited"
NOOP = "noop"
IGNORED = "ignored"


def _find_payment(provider_payment_id, provider_intent_id):
    payment = None
    if provider_payment_id:
        payment = (
            Payment.query
            .filter((Payment.provider_payment_id == provider_payment_id) | (Payment.provider_intent_id == provider_payment_id))
            .with_for_update()
            .first()
        )
    if payment is None and provider_intent_id:
        payment = Payment.query.filter_by(provider_intent_id=provider_intent_id).with_for_update().first()
    if payment is None:
        raise ReconciliationMismatch(f"No payment for provider reference {provider_payment_id or provider_intent_id}")
    return payment


def on_provider_event(event_type: str, provider_payment_id: str, status: str, provider_intent_id: str = None) -> str:
    """
    Apply one provider event and return what happened to it.

    Unknown references are logged and discarded with outcome ``"ignored"``.
    """
    status = (status or "").lower()
    try:
        payment = _find_payment(provider_payment_id, provider_intent_id)
        if provider_intent_id and not payment.provider_intent_id:
            payment.provider_intent_id = provider_intent_id

        if payment.purpose == PURPOSE_TOPUP:
            outcome = _apply_top_up(payment, status, event_type)
        else:
            outcome = _apply_booking_payment(payment, status, event_type)
        db.session.commit()
    except ReconciliationMismatch as exc:
        db.session.rollback()
        logger.warning("Discarding %s event: %s", event_type, exc.message)
        return IGNORED
    except Exception:
        db.session.rollback()
        raise

    logger.info("Provider event %s for payment %s -> %s", event_type, payment.id, outcome)
    return outcome


def _apply_top_up(payment: Payment, status: str, event_type: str) -> str:
    if status == SUCCEEDED:
        if payment.status == "PAID":
            return NOOP
        wallet.credit(payment.user_id, payment.venue_id, payment.amount, "Wallet top-up", reference=f"payment:{payment.id}")
        payment.status = "PAID"
        payment.paid_at = datetime.utcnow()
        log_event("WALLET_TOPUP_PAID", user_id=payment.user_id, entity="payment", entity_id=payment.id,
                  venue_id=payment.venue_id, metadata={"amount": payment.amount, "event": event_type})
        return TOPUP_CREDITED

    if status in FAILURE_STATUSES:
        if payment.status != "INIT":
            return NOOP
        payment.status = "FAILED"
        log_event("WALLET_TOPUP_FAILED", entity="payment", entity_id=payment.id,
                  venue_id=payment.venue_id, metadata={"event": event_type})
        return MARKED_FAILED

    return NOOP


def _apply_booking_payment(payment: Payment, status: str, event_type: str) -> str:
    if payment.booking_id is None:
        raise ReconciliationMismatch(f"Payment {payment.id} has no booking")
    booking = Booking.query.filter_by(id=payment.booking_id).with_for_update().first()
    if booking is None:
        raise ReconciliationMismatch(f"Booking {payment.booking_id} not found")

    if status == SUCCEEDED:
        if payment.status in ("PAID", "REFUNDED"):
            return NOOP
        payment.status = "PAID"
        payment.paid_at = datetime.utcnow()

        if booking.payment_status not in (PAYMENT_PENDING, PAYMENT_FAILED):
            # settled some other way (wallet, earlier checkout); keep the money on the wallet
            wallet.credit(payment.user_id, payment.venue_id, payment.amount, "Duplicate payment credit",
                          reference=f"payment:{payment.id}")
            log_event("PAYMENT_CREDITED_TO_WALLET", entity="payment", entity_id=payment.id,
                      venue_id=booking.venue_id,
                      metadata={"booking_id": booking.id, "event": event_type, "amount": payment.amount})
            return CREDITED

        if booking.cancelled_at is not None:
            # the revenue credit was reversed when the unpaid booking was released
            ledger.record_revenue(booking, f"Late payment - booking {booking.id}")
            booking.payment_status = PAYMENT_PAID
            booking.payment_method = METHOD_PROVIDER
            credit_back_to_wallet(booking, "Late payment credit")
            log_event("PAYMENT_CREDITED_TO_WALLET", entity="booking", entity_id=booking.id,
                      venue_id=booking.venue_id,
                      metadata={"payment_id": payment.id, "event": event_type, "amount": payment.amount})
            return CREDITED

        booking.payment_status = PAYMENT_PAID
        booking.payment_method = METHOD_PROVIDER
        log_event("PAYMENT_PAID", entity="payment", entity_id=payment.id, venue_id=booking.venue_id,
                  metadata={"booking_id": booking.id, "event": event_type, "provider_payment_id": payment.provider_payment_id})
        return PAID

    if status in FAILURE_STATUSES:
        if payment.status == "INIT":
            payment.status = "FAILED"
        if booking.payment_status != PAYMENT_PENDING:
            return NOOP
        booking.payment_status = PAYMENT_FAILED
        log_event("PAYMENT_FAILED", entity="payment", entity_id=payment.id, venue_id=booking.venue_id,
                  metadata={"booking_id": booking.id, "event": event_type})
        return MARKED_FAILED

    return NOOP

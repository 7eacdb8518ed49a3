from decimal import Decimal

import pytest

from models import db
from models.booking import Booking
from models.ledger import LedgerEntry
from models.payment import Payment
from services import wallet
from services.booking import create_booking, cancel_booking
from services.ledger import venue_totals
from services.reconciliation import on_provider_event
from tests.conftest import add_provider_payment


@pytest.fixture
def pending(court, player, play_date):
    booking = create_booking(court.id, player.id, play_date, "10:00", "11:30").booking
    add_provider_payment(booking, "cs_test_1")
    return booking


def reload(booking):
    return db.session.get(Booking, booking.id)


def test_success_marks_booking_paid(pending):
    outcome = on_provider_event("checkout.session.completed", "cs_test_1", "succeeded", provider_intent_id="pi_1")

    assert outcome == "paid"
    booking = reload(pending)
    assert booking.payment_status == "paid"
    assert booking.payment_method == "provider"
    payment = Payment.query.filter_by(provider_payment_id="cs_test_1").one()
    assert payment.status == "PAID"
    assert payment.provider_intent_id == "pi_1"
    assert payment.paid_at is not None


def test_replayed_success_is_a_noop(pending):
    on_provider_event("checkout.session.completed", "cs_test_1", "succeeded")
    entries_before = LedgerEntry.query.count()

    assert on_provider_event("checkout.session.completed", "cs_test_1", "succeeded") == "noop"
    assert reload(pending).payment_status == "paid"
    assert LedgerEntry.query.count() == entries_before


def test_failure_then_success(pending):
    assert on_provider_event("checkout.session.expired", "cs_test_1", "expired") == "failed"
    assert reload(pending).payment_status == "failed"
    assert reload(pending).cancelled_at is None

    # a second failure changes nothing
    assert on_provider_event("checkout.session.expired", "cs_test_1", "failed") == "noop"

    assert on_provider_event("checkout.session.async_payment_succeeded", "cs_test_1", "succeeded") == "paid"
    assert reload(pending).payment_status == "paid"


def test_failure_after_paid_is_ignored(pending):
    on_provider_event("checkout.session.completed", "cs_test_1", "succeeded")
    assert on_provider_event("payment_intent.payment_failed", "cs_test_1", "failed") == "noop"
    assert reload(pending).payment_status == "paid"


def test_lookup_by_payment_intent(pending):
    on_provider_event("checkout.session.completed", "cs_test_1", "succeeded", provider_intent_id="pi_9")
    assert on_provider_event("payment_intent.succeeded", None, "succeeded", provider_intent_id="pi_9") == "noop"


def test_unknown_reference_is_ignored(pending):
    assert on_provider_event("checkout.session.completed", "cs_unknown", "succeeded") == "ignored"
    assert reload(pending).payment_status == "pending"


def test_success_for_booking_cancelled_while_unpaid_goes_to_wallet(pending, player):
    cancel_booking(pending.id, actor_id=player.id)

    assert on_provider_event("checkout.session.completed", "cs_test_1", "succeeded") == "credited"

    booking = reload(pending)
    assert booking.payment_status == "refunded"
    assert booking.refund_status == "credited"
    assert wallet.get_balance(player.id, booking.venue_id) == Decimal("37.50")
    assert LedgerEntry.query.filter_by(booking_id=booking.id, category="refund").count() == 1
    assert LedgerEntry.query.filter_by(booking_id=booking.id, category="reversal").count() == 1
    assert venue_totals(booking.venue_id)["net"] == Decimal("0.00")

    assert on_provider_event("checkout.session.completed", "cs_test_1", "succeeded") == "noop"
    assert wallet.get_balance(player.id, booking.venue_id) == Decimal("37.50")


def test_second_payment_for_wallet_paid_booking_is_kept_on_wallet(pending, player):
    wallet.credit(player.id, pending.venue_id, Decimal("37.50"), "Top-up")
    db.session.commit()
    from services.booking import pay_booking_with_wallet
    pay_booking_with_wallet(pending.id, player.id)

    assert on_provider_event("checkout.session.completed", "cs_test_1", "succeeded") == "credited"
    booking = reload(pending)
    assert booking.payment_status == "paid"
    assert booking.payment_method == "wallet"
    assert wallet.get_balance(player.id, booking.venue_id) == Decimal("37.50")


def test_top_up_credits_wallet_once(player, venue):
    db.session.add(Payment(purpose="TOPUP", user_id=player.id, venue_id=venue.id, amount=Decimal("30.00"),
                           status="INIT", provider_payment_id="cs_topup"))
    db.session.commit()

    assert on_provider_event("checkout.session.completed", "cs_topup", "succeeded") == "topup_credited"
    assert on_provider_event("checkout.session.completed", "cs_topup", "succeeded") == "noop"

    assert wallet.get_balance(player.id, venue.id) == Decimal("30.00")
    assert Payment.query.filter_by(provider_payment_id="cs_topup").one().status == "PAID"


def test_failed_top_up_credits_nothing(player, venue):
    db.session.add(Payment(purpose="TOPUP", user_id=player.id, venue_id=venue.id, amount=Decimal("30.00"),
                           status="INIT", provider_payment_id="cs_topup"))
    db.session.commit()

    assert on_provider_event("checkout.session.expired", "cs_topup", "expired") == "failed"
    assert wallet.get_balance(player.id, venue.id) == Decimal("0.00")

from decimal import Decimal
from unittest import mock

import pytest

from models import db
from models.payment import Payment
from models.wallet import Wallet, WalletTransaction
from services import wallet
from services.errors import InsufficientFundsError, ValidationError, NotFoundError, PaymentProviderError
from utils.payment_provider import ChargeResult


def test_balance_of_untouched_wallet_is_zero(player, venue):
    assert wallet.get_balance(player.id, venue.id) == Decimal("0.00")
    assert Wallet.query.count() == 0


def test_credit_then_debit(player, venue):
    wallet.credit(player.id, venue.id, "20.00", "Top-up", reference="t1")
    wallet.debit(player.id, venue.id, Decimal("7.50"), "Booking payment", reference=3)
    db.session.commit()

    assert wallet.get_balance(player.id, venue.id) == Decimal("12.50")
    moves = WalletTransaction.query.order_by(WalletTransaction.id).all()
    assert [(m.kind, m.amount, m.balance_after) for m in moves] == [
        ("CREDIT", Decimal("20.00"), Decimal("20.00")),
        ("DEBIT", Decimal("7.50"), Decimal("12.50")),
    ]
    assert moves[1].reference == "3"


def test_overdraft_is_refused_and_balance_unchanged(player, venue):
    wallet.credit(player.id, venue.id, Decimal("5.00"), "Top-up")
    db.session.commit()

    with pytest.raises(InsufficientFundsError):
        wallet.debit(player.id, venue.id, Decimal("5.01"), "Booking payment")
    db.session.rollback()

    assert wallet.get_balance(player.id, venue.id) == Decimal("5.00")
    assert WalletTransaction.query.filter_by(kind="DEBIT").count() == 0


def test_debit_to_exactly_zero(player, venue):
    wallet.credit(player.id, venue.id, Decimal("5.00"), "Top-up")
    wallet.debit(player.id, venue.id, Decimal("5.00"), "Booking payment")
    db.session.commit()
    assert wallet.get_balance(player.id, venue.id) == Decimal("0.00")


@pytest.mark.parametrize("amount", [0, -1, "abc", None])
def test_amount_must_be_positive(player, venue, amount):
    with pytest.raises(ValidationError):
        wallet.credit(player.id, venue.id, amount, "Top-up")


def test_wallets_are_per_venue(player, venue, admin):
    from models.venue import Venue

    other = Venue(name="Elsewhere", city="Utrecht", owner_user_id=admin.id)
    db.session.add(other)
    db.session.commit()

    wallet.credit(player.id, venue.id, Decimal("10.00"), "Top-up")
    db.session.commit()
    assert wallet.get_balance(player.id, other.id) == Decimal("0.00")
    with pytest.raises(InsufficientFundsError):
        wallet.debit(player.id, other.id, Decimal("1.00"), "Booking payment")


def test_start_top_up_opens_provider_charge(player, venue):
    charge = ChargeResult(payment_id="cs_topup", checkout_url="https://checkout.test/topup")
    with mock.patch("utils.payment_provider.create_charge", return_value=charge) as create:
        payment = wallet.start_top_up(player.id, venue.id, "25")

    assert create.call_args.kwargs["metadata"]["purpose"] == "TOPUP"
    assert payment.purpose == "TOPUP"
    assert payment.amount == Decimal("25.00")
    assert payment.provider_payment_id == "cs_topup"
    assert payment.checkout_url == "https://checkout.test/topup"
    # nothing is credited until the provider confirms
    assert wallet.get_balance(player.id, venue.id) == Decimal("0.00")


def test_start_top_up_without_provider(player, venue):
    with pytest.raises(PaymentProviderError):
        wallet.start_top_up(player.id, venue.id, "25")
    assert Payment.query.one().status == "FAILED"


def test_start_top_up_unknown_venue(player):
    with pytest.raises(NotFoundError):
        wallet.start_top_up(player.id, 404, "25")

"""
Per-venue player wallets.

``credit`` and ``debit`` lock the wallet row and append a movement, but
never commit: the calling operation commits them together with the rest
of its writes.
"""
import logging
from decimal import Decimal, InvalidOperation

from flask import current_app

from models import db
from models.payment import Payment, PURPOSE_TOPUP
from models.venue import Venue
from models.wallet import Wallet, WalletTransaction
from services.errors import ValidationError, InsufficientFundsError, NotFoundError, PaymentProviderError
from services.pricing import to_money
from utils import payment_provider
from utils.audit import log_event

logger = logging.getLogger(__name__)

CREDIT = "CREDIT"
DEBIT = "DEBIT"


def _positive_amount(amount) -> Decimal:
    try:
        value = to_money(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}")
    if value <= 0:
        raise ValidationError("Amount must be positive")
    return value


def get_or_create_wallet(user_id: int, venue_id: int, lock: bool = True) -> Wallet:
    q = Wallet.query.filter_by(user_id=user_id, venue_id=venue_id)
    if lock:
        q = q.with_for_update()
    wallet = q.first()
    if wallet is None:
        wallet = Wallet(user_id=user_id, venue_id=venue_id, balance=Decimal("0.00"))
        db.session.add(wallet)
        db.session.flush()
    return wallet


def _record(wallet: Wallet, kind: str, amount: Decimal, reason: str, reference):
    row = WalletTransaction(
        wallet_id=wallet.id,
        kind=kind,
        amount=amount,
        balance_after=wallet.balance,
        reason=reason,
        reference=str(reference) if reference is not None else None,
    )
    db.session.add(row)
    return row


def credit(user_id: int, venue_id: int, amount, reason: str, reference=None) -> Wallet:
    value = _positive_amount(amount)
    wallet = get_or_create_wallet(user_id, venue_id)
    wallet.balance = to_money(wallet.balance) + value
    _record(wallet, CREDIT, value, reason, reference)
    logger.info("Wallet %s credited %s (%s)", wallet.id, value, reason)
    return wallet


def debit(user_id: int, venue_id: int, amount, reason: str, reference=None) -> Wallet:
    value = _positive_amount(amount)
    wallet = get_or_create_wallet(user_id, venue_id)
    if value > to_money(wallet.balance):
        raise InsufficientFundsError()
    wallet.balance = to_money(wallet.balance) - value
    _record(wallet, DEBIT, value, reason, reference)
    logger.info("Wallet %s debited %s (%s)", wallet.id, value, reason)
    return wallet


def get_balance(user_id: int, venue_id: int) -> Decimal:
    wallet = Wallet.query.filter_by(user_id=user_id, venue_id=venue_id).first()
    if wallet is None:
        return Decimal("0.00")
    return to_money(wallet.balance)


def recent_transactions(user_id: int, venue_id: int, limit: int = 20):
    wallet = Wallet.query.filter_by(user_id=user_id, venue_id=venue_id).first()
    if wallet is None:
        return []
    return (
        WalletTransaction.query
        .filter_by(wallet_id=wallet.id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(limit)
        .all()
    )


def start_top_up(user_id: int, venue_id: int, amount) -> Payment:
    """
    Open a provider charge that credits the wallet once the provider
    confirms it. Raises PaymentProviderError when no charge can be created.
    """
    value = _positive_amount(amount)
    if db.session.get(Venue, venue_id) is None:
        raise NotFoundError("Venue")

    currency = current_app.config.get("CURRENCY", "EUR")
    payment = Payment(
        purpose=PURPOSE_TOPUP,
        user_id=user_id,
        venue_id=venue_id,
        amount=value,
        currency=currency,
        status="INIT",
    )
    db.session.add(payment)
    db.session.commit()

    try:
        charge = payment_provider.create_charge(
            value,
            currency,
            metadata={"payment_id": payment.id, "purpose": PURPOSE_TOPUP, "user_id": user_id, "venue_id": venue_id},
            description=f"Wallet top-up ({value} {currency})",
        )
    except PaymentProviderError:
        payment.status = "FAILED"
        db.session.commit()
        raise

    payment.provider_payment_id = charge.payment_id
    payment.provider_intent_id = charge.intent_id
    payment.checkout_url = charge.checkout_url
    log_event("WALLET_TOPUP_STARTED", user_id=user_id, entity="payment", entity_id=payment.id,
              venue_id=venue_id, metadata={"amount": value})
    db.session.commit()
    return payment

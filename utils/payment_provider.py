"""
Stripe Checkout adapter.

Charges are Checkout sessions; the session id is the provider reference
stored on ``Payment.provider_payment_id`` and echoed back by webhooks.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from urllib.parse import urlencode, urlparse, parse_qsl, urlunparse

import stripe
from flask import current_app

from services.errors import PaymentProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    payment_id: str
    checkout_url: str
    intent_id: str = None


def is_configured() -> bool:
    cfg = current_app.config
    return bool(cfg.get("STRIPE_SECRET_KEY") and cfg.get("STRIPE_SUCCESS_URL") and cfg.get("STRIPE_CANCEL_URL"))


def _append_query(url: str, params: dict) -> str:
    if not url:
        return url
    parts = urlparse(url)
    query = dict(parse_qsl(parts.query))
    query.update({k: v for k, v in params.items() if v is not None})
    return urlunparse(parts._replace(query=urlencode(query)))


def to_minor_units(amount) -> int:
    return int((Decimal(str(amount)) * 100).to_integral_value())


def _configure():
    if not is_configured():
        raise PaymentProviderError("Payment provider not configured")
    stripe.api_key = current_app.config["STRIPE_SECRET_KEY"]


def create_charge(amount, currency: str, metadata: dict, description: str) -> ChargeResult:
    _configure()
    meta = {k: str(v) for k, v in (metadata or {}).items() if v is not None}
    success_url = _append_query(current_app.config["STRIPE_SUCCESS_URL"], meta)
    cancel_url = _append_query(current_app.config["STRIPE_CANCEL_URL"], meta)

    try:
        session = stripe.checkout.Session.create(
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": currency.lower(),
                    "product_data": {"name": description},
                    "unit_amount": to_minor_units(amount),
                },
                "quantity": 1,
            }],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=meta,
        )
    except stripe.StripeError as exc:
        logger.warning("Stripe checkout creation failed: %s", exc)
        raise PaymentProviderError(f"Payment provider error: {exc}")

    return ChargeResult(
        payment_id=session["id"],
        checkout_url=session["url"],
        intent_id=session.get("payment_intent"),
    )


def create_refund(payment_intent_id: str, amount, idempotency_key: str = None) -> str:
    _configure()
    if not payment_intent_id:
        raise PaymentProviderError("No provider payment to refund")
    options = {"idempotency_key": idempotency_key} if idempotency_key else {}
    try:
        refund = stripe.Refund.create(
            payment_intent=payment_intent_id,
            amount=to_minor_units(amount),
            **options,
        )
    except stripe.StripeError as exc:
        logger.warning("Stripe refund failed for %s: %s", payment_intent_id, exc)
        raise PaymentProviderError(f"Refund failed: {exc}")
    return refund["id"]

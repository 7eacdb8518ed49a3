import logging

import stripe
from flask import Blueprint, request, jsonify, current_app

from services.reconciliation import on_provider_event, SUCCEEDED, FAILED

logger = logging.getLogger(__name__)

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")

EVENT_STATUS = {
    "checkout.session.completed": SUCCEEDED,
    "checkout.session.async_payment_succeeded": SUCCEEDED,
    "payment_intent.succeeded": SUCCEEDED,
    "checkout.session.expired": FAILED,
    "checkout.session.async_payment_failed": FAILED,
    "payment_intent.payment_failed": FAILED,
}


@webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    sig_header = request.headers.get("Stripe-Signature")
    payload = request.data

    if not endpoint_secret:
        return jsonify(error="Webhook secret not configured"), 500

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, endpoint_secret)
    except (ValueError, stripe.SignatureVerificationError):
        logger.warning("Rejected Stripe webhook with an invalid signature")
        return jsonify(error="Invalid webhook signature"), 400

    event_type = event["type"]
    status = EVENT_STATUS.get(event_type)
    if status is None:
        return jsonify(received=True), 200

    obj = event["data"]["object"]
    if event_type.startswith("payment_intent."):
        session_id, intent_id = None, obj.get("id")
    else:
        session_id, intent_id = obj.get("id"), obj.get("payment_intent")
        # async payment methods complete the session before the money arrives
        if event_type == "checkout.session.completed" and obj.get("payment_status") == "unpaid":
            return jsonify(received=True), 200

    outcome = on_provider_event(event_type, session_id, status, provider_intent_id=intent_id)
    return jsonify(received=True, outcome=outcome), 200

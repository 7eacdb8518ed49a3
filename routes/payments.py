from flask import Blueprint, request, jsonify, g

from services import booking as booking_service
from services import wallet as wallet_service
from utils.auth_context import login_required

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


@payments_bp.post("/bookings/<int:booking_id>/checkout")
@login_required
def start_booking_checkout(booking_id: int):
    payment = booking_service.initiate_booking_payment(booking_id, g.user.id)
    return jsonify(payment_id=payment.id, checkout_url=payment.checkout_url), 200


@payments_bp.post("/wallet/topup")
@login_required
def start_wallet_top_up():
    data = request.get_json(silent=True) or {}
    venue_id = data.get("venue_id")
    if not venue_id or data.get("amount") is None:
        return jsonify(error="venue_id and amount are required"), 400
    try:
        venue_id = int(venue_id)
    except (TypeError, ValueError):
        return jsonify(error="venue_id must be a number"), 400

    payment = wallet_service.start_top_up(g.user.id, venue_id, data.get("amount"))
    return jsonify(payment_id=payment.id, checkout_url=payment.checkout_url), 200

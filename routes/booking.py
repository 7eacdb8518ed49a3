from flask import Blueprint, request, jsonify, g

from models import db
from models.booking import Booking
from models.venue import Venue
from security.rbac import require_roles, ensure_venue_admin, has_role
from services import booking as booking_service
from services.errors import NotFoundError, ForbiddenError
from utils.auth_context import login_required

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def serialize_booking(b: Booking, include_shares: bool = False):
    data = {
        "id": b.id,
        "court_id": b.court_id,
        "venue_id": b.venue_id,
        "user_id": b.user_id,
        "date": b.booking_date.isoformat(),
        "start_time": b.start_time.strftime("%H:%M"),
        "end_time": b.end_time.strftime("%H:%M"),
        "total_price": str(b.total_price),
        "attendees": b.attendees,
        "notes": b.notes,
        "status": b.status,
        "payment_status": b.payment_status,
        "payment_method": b.payment_method,
        "refund_status": b.refund_status,
        "cancellation_reason": b.cancellation_reason,
        "created_at": b.created_at.isoformat(),
        "cancelled_at": b.cancelled_at.isoformat() if b.cancelled_at else None,
        "weather_checked_at": b.weather_checked_at.isoformat() if b.weather_checked_at else None,
    }
    if include_shares:
        data["shares"] = [
            {
                "share_index": s.share_index,
                "share_amount": str(s.share_amount),
                "service_fee": str(s.service_fee),
                "total_owed": str(s.total_owed),
            }
            for s in b.shares
        ]
    return data


def _booking_for_admin(booking_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking")
    ensure_venue_admin(g.user, db.session.get(Venue, booking.venue_id))
    return booking


@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    court_id = data.get("court_id")
    if not court_id or not data.get("date") or not data.get("start_time") or not data.get("end_time"):
        return jsonify(error="court_id, date, start_time, end_time are required"), 400
    try:
        court_id = int(court_id)
    except (TypeError, ValueError):
        return jsonify(error="court_id must be a number"), 400

    result = booking_service.create_booking(
        court_id=court_id,
        requester_id=g.user.id,
        booking_date=data.get("date"),
        start=data.get("start_time"),
        end=data.get("end_time"),
        attendees=data.get("attendees", 1),
        split_payment=bool(data.get("split_payment")),
        public_match=bool(data.get("public_match")),
        looking_for_players=data.get("looking_for_players", 3),
        pay_with_wallet=bool(data.get("pay_with_wallet")),
        notes=data.get("notes"),
    )

    payload = serialize_booking(result.booking, include_shares=True)
    payload["match_id"] = result.match.id if result.match else None
    payload["checkout_url"] = result.checkout_url
    if result.warnings:
        payload["warnings"] = result.warnings
    return jsonify(payload), 201


@booking_bp.get("/me")
@login_required
def my_bookings():
    rows = (
        Booking.query
        .filter_by(user_id=g.user.id)
        .order_by(Booking.booking_date.desc(), Booking.start_time.desc())
        .all()
    )
    return jsonify([serialize_booking(b) for b in rows]), 200


@booking_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        return jsonify(error="Booking not found"), 404
    if booking.user_id != g.user.id:
        try:
            ensure_venue_admin(g.user, db.session.get(Venue, booking.venue_id))
        except ForbiddenError:
            return jsonify(error="Booking not found"), 404
    return jsonify(serialize_booking(booking, include_shares=True)), 200


@booking_bp.get("")
@require_roles("ADMIN")
def list_bookings():
    q = Booking.query
    venue_id = request.args.get("venue_id", type=int)
    if venue_id:
        q = q.filter(Booking.venue_id == venue_id)
    if not has_role("SUPER_ADMIN"):
        owned = [v.id for v in Venue.query.filter_by(owner_user_id=g.user.id).all()]
        q = q.filter(Booking.venue_id.in_(owned))
    status = request.args.get("status")
    if status:
        q = q.filter(Booking.status == status)

    rows = q.order_by(Booking.booking_date.desc(), Booking.start_time.desc()).limit(500).all()
    return jsonify([serialize_booking(b) for b in rows]), 200


@booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    booking_service.get_booking_for_user(booking_id, g.user.id)
    data = request.get_json(silent=True) or {}
    booking = booking_service.cancel_booking(
        booking_id, actor_id=g.user.id, reason=(data.get("reason") or "").strip() or None,
    )
    return jsonify(serialize_booking(booking)), 200


@booking_bp.post("/<int:booking_id>/admin_cancel")
@require_roles("ADMIN")
def admin_cancel_booking(booking_id: int):
    _booking_for_admin(booking_id)
    data = request.get_json(silent=True) or {}
    booking = booking_service.cancel_booking(
        booking_id,
        actor_id=g.user.id,
        reason=(data.get("reason") or "").strip() or "Cancelled by venue",
        enforce_cutoff=False,
    )
    return jsonify(serialize_booking(booking)), 200


@booking_bp.post("/<int:booking_id>/refund")
@require_roles("ADMIN")
def refund_booking(booking_id: int):
    _booking_for_admin(booking_id)
    data = request.get_json(silent=True) or {}
    booking = booking_service.refund_booking(
        booking_id,
        reason=(data.get("reason") or "").strip() or None,
        processed_by=g.user.id,
        to_wallet=bool(data.get("to_wallet")),
    )
    return jsonify(serialize_booking(booking)), 200


@booking_bp.post("/<int:booking_id>/pay-with-wallet")
@login_required
def pay_with_wallet(booking_id: int):
    booking = booking_service.pay_booking_with_wallet(booking_id, g.user.id)
    return jsonify(serialize_booking(booking)), 200


@booking_bp.post("/<int:booking_id>/move")
@require_roles("ADMIN")
def move_booking(booking_id: int):
    current = _booking_for_admin(booking_id)
    data = request.get_json(silent=True) or {}
    if not data.get("start_time"):
        return jsonify(error="start_time is required"), 400

    booking = booking_service.move_booking(
        booking_id,
        new_date=data.get("date") or current.booking_date,
        new_start=data.get("start_time"),
        actor_id=g.user.id,
    )
    return jsonify(serialize_booking(booking)), 200


@booking_bp.post("/<int:booking_id>/mark-paid")
@require_roles("ADMIN")
def mark_paid(booking_id: int):
    _booking_for_admin(booking_id)
    booking = booking_service.mark_paid_manually(booking_id, admin_id=g.user.id)
    return jsonify(serialize_booking(booking)), 200

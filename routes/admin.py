from flask import Blueprint, jsonify, g, request

from models import db
from models.booking import Booking
from models.ledger import LedgerEntry
from models.venue import Venue
from routes.booking import serialize_booking
from security.rbac import require_roles, ensure_venue_admin
from services.errors import NotFoundError
from services.ledger import venue_totals

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _venue_for_admin(venue_id: int) -> Venue:
    venue = db.session.get(Venue, venue_id)
    if venue is None:
        raise NotFoundError("Venue")
    ensure_venue_admin(g.user, venue)
    return venue


@admin_bp.get("/venues/<int:venue_id>/ledger")
@require_roles("ADMIN")
def venue_ledger(venue_id: int):
    venue = _venue_for_admin(venue_id)
    limit = min(request.args.get("limit", default=200, type=int), 1000)
    entries = (
        LedgerEntry.query
        .filter_by(venue_id=venue.id)
        .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .limit(limit)
        .all()
    )
    totals = venue_totals(venue.id)
    return jsonify(
        venue_id=venue.id,
        totals={k: str(v) for k, v in totals.items()},
        entries=[
            {
                "id": e.id,
                "booking_id": e.booking_id,
                "description": e.description,
                "debit": str(e.debit),
                "credit": str(e.credit),
                "category": e.category,
                "status": e.status,
                "transaction_date": e.transaction_date.isoformat(),
            }
            for e in entries
        ],
    ), 200


@admin_bp.get("/venues/<int:venue_id>/cancelled-bookings")
@require_roles("ADMIN")
def cancelled_bookings(venue_id: int):
    venue = _venue_for_admin(venue_id)
    rows = (
        Booking.query
        .filter(Booking.venue_id == venue.id, Booking.cancelled_at.isnot(None))
        .order_by(Booking.cancelled_at.desc())
        .limit(500)
        .all()
    )
    return jsonify([serialize_booking(b) for b in rows]), 200

from flask import Blueprint, request, jsonify, g

from models import db
from models.venue import Venue
from security.rbac import require_roles
from services.scheduling import venue_zone
from utils.auth_context import login_required
from utils.audit import log_event

venues_bp = Blueprint("venues", __name__, url_prefix="/venues")


def serialize_venue(v: Venue):
    return {
        "id": v.id,
        "name": v.name,
        "city": v.city,
        "timezone": v.timezone,
        "owner_user_id": v.owner_user_id,
        "is_active": v.is_active,
        "created_at": v.created_at.isoformat(),
    }


@venues_bp.post("")
@require_roles("ADMIN")
def create_venue():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    city = (data.get("city") or "").strip() or None
    tz_name = (data.get("timezone") or "").strip() or None
    if not name:
        return jsonify(error="Venue name required"), 400
    if tz_name:
        venue_zone(tz_name)

    venue = Venue(name=name, city=city, timezone=tz_name, owner_user_id=g.user.id)
    db.session.add(venue)
    db.session.flush()
    log_event("VENUE_CREATE", user_id=g.user.id, entity="venue", entity_id=venue.id, venue_id=venue.id)
    db.session.commit()
    return jsonify(serialize_venue(venue)), 201


@venues_bp.get("")
@login_required
def list_venues():
    venues = Venue.query.filter_by(is_active=True).order_by(Venue.name.asc()).all()
    return jsonify([serialize_venue(v) for v in venues]), 200

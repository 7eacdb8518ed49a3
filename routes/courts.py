from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.court import Court, COURT_STATUSES
from models.venue import Venue
from security.rbac import require_roles, ensure_venue_admin
from services.booking import parse_date
from services.errors import NotFoundError, ValidationError
from services.scheduling import day_schedule, has_conflict
from utils.auth_context import login_required
from utils.audit import log_event

courts_bp = Blueprint("courts", __name__)


def serialize_court(c: Court):
    return {
        "id": c.id,
        "venue_id": c.venue_id,
        "name": c.name,
        "hourly_rate": str(c.hourly_rate),
        "capacity": c.capacity,
        "status": c.status,
        "is_outdoor": c.is_outdoor,
    }


def _get_venue(venue_id: int) -> Venue:
    venue = db.session.get(Venue, venue_id)
    if venue is None:
        raise NotFoundError("Venue")
    return venue


def _get_court(court_id: int) -> Court:
    court = db.session.get(Court, court_id)
    if court is None:
        raise NotFoundError("Court")
    return court


@courts_bp.post("/venues/<int:venue_id>/courts")
@require_roles("ADMIN")
def create_court(venue_id: int):
    venue = _get_venue(venue_id)
    ensure_venue_admin(g.user, venue)

    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify(error="Court name required"), 400
    try:
        hourly_rate = Decimal(str(data.get("hourly_rate")))
        capacity = int(data.get("capacity") or 4)
    except (InvalidOperation, TypeError, ValueError):
        return jsonify(error="hourly_rate and capacity must be numbers"), 400
    if hourly_rate <= 0 or capacity < 1:
        return jsonify(error="hourly_rate and capacity must be positive"), 400

    court = Court(
        venue_id=venue.id,
        name=name,
        hourly_rate=hourly_rate,
        capacity=capacity,
        is_outdoor=bool(data.get("is_outdoor", True)),
    )
    db.session.add(court)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Court name already exists"), 409

    log_event("COURT_CREATE", user_id=g.user.id, entity="court", entity_id=court.id, venue_id=venue.id)
    db.session.commit()
    return jsonify(serialize_court(court)), 201


@courts_bp.get("/venues/<int:venue_id>/courts")
@login_required
def list_courts(venue_id: int):
    venue = _get_venue(venue_id)
    return jsonify([serialize_court(c) for c in venue.courts]), 200


@courts_bp.post("/courts/<int:court_id>/status")
@require_roles("ADMIN")
def set_court_status(court_id: int):
    court = _get_court(court_id)
    ensure_venue_admin(g.user, court.venue)

    data = request.get_json(silent=True) or {}
    status = (data.get("status") or "").strip().lower()
    if status not in COURT_STATUSES:
        return jsonify(error=f"status must be one of {', '.join(COURT_STATUSES)}"), 400

    old_status = court.status
    court.status = status
    log_event("COURT_STATUS_CHANGE", user_id=g.user.id, entity="court", entity_id=court.id,
              venue_id=court.venue_id, metadata={"from": old_status, "to": status})
    db.session.commit()
    return jsonify(serialize_court(court)), 200


@courts_bp.get("/courts/<int:court_id>/availability")
@login_required
def court_availability(court_id: int):
    court = _get_court(court_id)
    date_str = request.args.get("date")
    if not date_str:
        raise ValidationError("date is required")
    day = parse_date(date_str)

    payload = {
        "court_id": court.id,
        "date": day.isoformat(),
        "status": court.status,
        "booked": day_schedule(court.id, day),
    }
    start_time = request.args.get("start_time")
    end_time = request.args.get("end_time")
    if start_time and end_time:
        payload["available"] = court.status == "active" and not has_conflict(court.id, day, start_time, end_time)
    return jsonify(payload), 200

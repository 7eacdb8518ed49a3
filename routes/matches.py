from flask import Blueprint, request, jsonify, g

from services import matches as match_service
from utils.auth_context import login_required

matches_bp = Blueprint("matches", __name__)


@matches_bp.post("/matches/<int:match_id>/join")
@login_required
def join_match(match_id: int):
    player = match_service.join_open_match(match_id, g.user.id)
    return jsonify(match_id=match_id, user_id=player.user_id, team=player.team), 201


@matches_bp.post("/bookings/<int:booking_id>/result")
@login_required
def submit_result(booking_id: int):
    data = request.get_json(silent=True) or {}
    result = match_service.submit_match_result(
        booking_id,
        submitted_by=g.user.id,
        team1=data.get("team1"),
        team2=data.get("team2"),
        set_scores=data.get("scores"),
    )
    return jsonify(
        id=result.id,
        booking_id=result.booking_id,
        winner_team=result.winner_team,
        ratings_applied=result.ratings_applied_at is not None,
    ), 200


@matches_bp.get("/players/<int:user_id>/rating")
@login_required
def player_rating(user_id: int):
    row = match_service.get_rating(user_id)
    return jsonify(user_id=user_id, rating=row.rating, matches_played=row.matches_played), 200

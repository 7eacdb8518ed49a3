import json
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking
from models.match import OpenMatch, MatchPlayer, MatchResult, PlayerRating, MATCH_OPEN, MATCH_FULL
from services.errors import ValidationError, NotFoundError, ConflictError, ForbiddenError
from services.rating import PlayerSnapshot, update_ratings, INITIAL_RATING
from utils.audit import log_event
from utils.side_effects import run_isolated

logger = logging.getLogger(__name__)


def join_open_match(match_id: int, user_id: int) -> MatchPlayer:
    try:
        match = OpenMatch.query.filter_by(id=match_id).with_for_update().first()
        if match is None:
            raise NotFoundError("Match")
        if not match.is_public or match.status != MATCH_OPEN:
            raise ValidationError("Match is not open for joining")

        players = MatchPlayer.query.filter_by(match_id=match.id, status="confirmed").all()
        if any(p.user_id == user_id for p in players):
            raise ConflictError("Already joined this match")

        seats = 1 + match.looking_for_players  # host included
        if len(players) >= seats:
            match.status = MATCH_FULL
            db.session.commit()
            raise ValidationError("Match is full")

        player = MatchPlayer(
            match_id=match.id,
            user_id=user_id,
            status="confirmed",
            team=1 if len(players) < 2 else 2,
        )
        db.session.add(player)
        if len(players) + 1 >= seats:
            match.status = MATCH_FULL

        log_event("MATCH_JOIN", user_id=user_id, entity="match", entity_id=match.id, venue_id=match.venue_id,
                  metadata={"team": player.team, "status": match.status})
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Already joined this match")
    except Exception:
        db.session.rollback()
        raise
    return player


def _clean_scores(set_scores):
    if not isinstance(set_scores, (list, tuple)) or not 1 <= len(set_scores) <= 3:
        raise ValidationError("Provide between 1 and 3 set scores")
    cleaned = []
    for score in set_scores:
        if not isinstance(score, (list, tuple)) or len(score) != 2:
            raise ValidationError("Each set score is a [team1, team2] pair")
        pair = []
        for games in score:
            if games is None:
                games = 0
            try:
                games = int(games)
            except (TypeError, ValueError):
                raise ValidationError("Set scores must be numbers")
            if games < 0:
                raise ValidationError("Set scores cannot be negative")
            pair.append(games)
        cleaned.append(pair)
    return cleaned


def winner_by_sets(set_scores) -> int:
    """Team with more sets won; a drawn set counts for team 2."""
    t1_sets = sum(1 for t1, t2 in set_scores if t1 > t2)
    t2_sets = len(set_scores) - t1_sets
    return 1 if t1_sets > t2_sets else 2


def submit_match_result(booking_id: int, submitted_by: int, team1, team2, set_scores) -> MatchResult:
    """
    Store (or overwrite) the result of the match played on a booking, then
    update player ratings once for that result. A rating failure is logged
    and leaves the stored result in place.

    Ratings are applied once per booking. A resubmitted (corrected) score
    replaces the stored sets and winner but does not re-rate the players;
    ``ratings_applied_at`` marks the result as rated.
    """
    team1, team2 = list(team1 or []), list(team2 or [])
    if len(team1) != 2 or len(team2) != 2:
        raise ValidationError("Each team needs exactly two players")
    try:
        player_ids = [int(p) for p in team1 + team2]
    except (TypeError, ValueError):
        raise ValidationError("Player ids must be numbers")
    if len(set(player_ids)) != 4:
        raise ValidationError("A player can only appear once")
    scores = _clean_scores(set_scores)

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking")
    if booking.cancelled_at is not None:
        raise ValidationError("Booking is cancelled")
    if submitted_by != booking.user_id and submitted_by not in player_ids:
        raise ForbiddenError("Only the booker or a player can submit the result")

    result = MatchResult.query.filter_by(booking_id=booking.id).first()
    if result is None:
        result = MatchResult(booking_id=booking.id)
        db.session.add(result)
    result.submitted_by = submitted_by
    result.team1_player1_id, result.team1_player2_id = player_ids[0], player_ids[1]
    result.team2_player1_id, result.team2_player2_id = player_ids[2], player_ids[3]
    result.scores_json = json.dumps(scores)
    result.winner_team = winner_by_sets(scores)

    log_event("MATCH_RESULT_SUBMIT", user_id=submitted_by, entity="booking", entity_id=booking.id,
              venue_id=booking.venue_id, metadata={"scores": scores, "winner_team": result.winner_team})
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Result was submitted concurrently, try again")

    run_isolated("rating update", apply_ratings, result.id)
    return result


def _rating_row(user_id: int) -> PlayerRating:
    row = PlayerRating.query.filter_by(user_id=user_id).with_for_update().first()
    if row is None:
        row = PlayerRating(user_id=user_id, rating=INITIAL_RATING, matches_played=0)
        db.session.add(row)
    return row


def apply_ratings(result_id: int):
    result = MatchResult.query.filter_by(id=result_id).with_for_update().first()
    if result is None or result.ratings_applied_at is not None:
        db.session.rollback()
        return None

    ids = [result.team1_player1_id, result.team1_player2_id, result.team2_player1_id, result.team2_player2_id]
    rows = {uid: _rating_row(uid) for uid in ids}
    snapshots = [PlayerSnapshot(uid, rows[uid].rating, rows[uid].matches_played or 0) for uid in ids]

    updates = update_ratings(snapshots[:2], snapshots[2:], json.loads(result.scores_json))
    for update in updates:
        row = rows[update.player_id]
        row.rating = update.new_rating
        row.matches_played = (row.matches_played or 0) + 1

    result.ratings_applied_at = datetime.utcnow()
    db.session.commit()
    logger.info("Ratings applied for match result %s", result.id)
    return updates


def get_rating(user_id: int) -> PlayerRating:
    row = db.session.get(PlayerRating, user_id)
    if row is None:
        return PlayerRating(user_id=user_id, rating=INITIAL_RATING, matches_played=0)
    return row

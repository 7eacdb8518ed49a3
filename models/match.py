from datetime import datetime
from models.db import db

MATCH_OPEN = "open"
MATCH_FULL = "full"

class OpenMatch(db.Model):
    __tablename__ = "open_matches"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)
    host_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    looking_for_players = db.Column(db.Integer, nullable=False, default=3)
    is_public = db.Column(db.Boolean, default=True, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=MATCH_OPEN)
    match_type = db.Column(db.String(20), nullable=False, default="friendly")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class MatchPlayer(db.Model):
    __tablename__ = "match_players"

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey("open_matches.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="confirmed")
    team = db.Column(db.Integer, nullable=True)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("match_id", "user_id", name="uq_match_player_once"),
    )


class MatchResult(db.Model):
    __tablename__ = "match_results"

    id = db.Column(db.Integer, primary_key=True)
    # one result per booking; resubmission overwrites
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True)
    submitted_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    team1_player1_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    team1_player2_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    team2_player1_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    team2_player2_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    scores_json = db.Column(db.Text, nullable=False)  # [[6, 4], [3, 6], [7, 5]]
    winner_team = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    ratings_applied_at = db.Column(db.DateTime, nullable=True)


class PlayerRating(db.Model):
    __tablename__ = "player_ratings"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    rating = db.Column(db.Float, nullable=False, default=2.5)
    matches_played = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

"""
Doubles skill-rating update.

Elo-style: team averages give the expected score, the game margin scales
the change, and players with few matches move faster. Ratings live on a
small scale (about 2.50), so one rating point is treated as 400 Elo points.
"""
from dataclasses import dataclass
from typing import List, Sequence, Tuple

BASE_K_ROOKIE = 50
BASE_K_NORMAL = 20
ROOKIE_MATCH_LIMIT = 5
RATING_SCALE_MULTIPLIER = 400
K_SCALE = 0.01
INITIAL_RATING = 2.5


@dataclass(frozen=True)
class PlayerSnapshot:
    player_id: int
    rating: float
    matches_played: int = 0


@dataclass(frozen=True)
class RatingUpdate:
    player_id: int
    old_rating: float
    new_rating: float
    change: float


def expected_score(avg_a: float, avg_b: float) -> float:
    """P(team A beats team B) = 1 / (1 + 10^((B - A) * scale / 400))"""
    diff = (avg_b - avg_a) * RATING_SCALE_MULTIPLIER
    return 1 / (1 + 10 ** (diff / 400))


def game_totals(set_scores) -> Tuple[int, int]:
    games1 = games2 = 0
    for score in set_scores or []:
        if not score:
            continue
        t1 = score[0] if len(score) > 0 else None
        t2 = score[1] if len(score) > 1 else None
        games1 += int(t1 or 0)
        games2 += int(t2 or 0)
    return games1, games2


def margin_multiplier(games1: int, games2: int) -> float:
    """1.0 for a close match up to 2.0 for a whitewash."""
    total = games1 + games2
    if total <= 0:
        return 1.0
    return 1 + abs(games1 - games2) / total


def k_factor(matches_played: int) -> float:
    base = BASE_K_ROOKIE if (matches_played or 0) < ROOKIE_MATCH_LIMIT else BASE_K_NORMAL
    return base * K_SCALE


def _update(player: PlayerSnapshot, actual: float, expected: float, multiplier: float) -> RatingUpdate:
    change = k_factor(player.matches_played) * multiplier * (actual - expected)
    return RatingUpdate(
        player_id=player.player_id,
        old_rating=player.rating,
        new_rating=round(player.rating + change, 2),
        change=round(change, 2),
    )


def update_ratings(
    team1: Sequence[PlayerSnapshot],
    team2: Sequence[PlayerSnapshot],
    set_scores,
) -> List[RatingUpdate]:
    """
    Rating updates for the four players of a doubles match, team 1 first.

    The outcome is decided on total games, not sets. Equal game totals
    count as a draw (0.5 each).
    """
    avg1 = sum(p.rating for p in team1) / len(team1)
    avg2 = sum(p.rating for p in team2) / len(team2)

    expected1 = expected_score(avg1, avg2)
    expected2 = 1 - expected1

    games1, games2 = game_totals(set_scores)
    if games1 > games2:
        actual1 = 1.0
    elif games1 < games2:
        actual1 = 0.0
    else:
        actual1 = 0.5
    actual2 = 1 - actual1

    multiplier = margin_multiplier(games1, games2)

    return (
        [_update(p, actual1, expected1, multiplier) for p in team1]
        + [_update(p, actual2, expected2, multiplier) for p in team2]
    )

import pytest

from services.rating import PlayerSnapshot, update_ratings, expected_score, margin_multiplier


def team(*specs):
    return [PlayerSnapshot(pid, rating, played) for pid, rating, played in specs]


def test_even_match_expected_score_is_half():
    assert expected_score(2.5, 2.5) == pytest.approx(0.5)
    # one full rating point is 400 Elo points
    assert expected_score(3.5, 2.5) == pytest.approx(1 / (1 + 10 ** -1))


def test_rookie_blowout_moves_ratings_half_a_point():
    t1 = team((1, 2.5, 0), (2, 2.5, 0))
    t2 = team((3, 2.5, 0), (4, 2.5, 0))

    updates = update_ratings(t1, t2, [[6, 0], [6, 0]])

    assert [u.player_id for u in updates] == [1, 2, 3, 4]
    # K 0.5, margin 2.0, actual - expected 0.5
    assert [u.new_rating for u in updates] == [3.0, 3.0, 2.0, 2.0]
    assert [u.change for u in updates] == [0.5, 0.5, -0.5, -0.5]


def test_changes_are_symmetric_for_equal_k():
    t1 = team((1, 2.8, 10), (2, 2.6, 10))
    t2 = team((3, 2.4, 10), (4, 2.7, 10))

    updates = update_ratings(t1, t2, [[6, 4], [3, 6], [7, 5]])
    winners, losers = updates[:2], updates[2:]

    assert winners[0].change == pytest.approx(-losers[0].change)
    assert sum(u.change for u in winners) == pytest.approx(-sum(u.change for u in losers))
    assert all(u.change > 0 for u in winners)


def test_close_match_changes_less_than_blowout():
    t1 = team((1, 2.5, 10), (2, 2.5, 10))
    t2 = team((3, 2.5, 10), (4, 2.5, 10))

    close = update_ratings(t1, t2, [[7, 6], [6, 7], [7, 6]])[0].change
    blowout = update_ratings(t1, t2, [[6, 0], [6, 0]])[0].change
    assert 0 < close < blowout


def test_favourite_gains_less_than_underdog():
    strong = team((1, 3.5, 10), (2, 3.5, 10))
    weak = team((3, 2.5, 10), (4, 2.5, 10))

    favourite_wins = update_ratings(strong, weak, [[6, 3], [6, 3]])[0].change
    underdog_wins = update_ratings(weak, strong, [[6, 3], [6, 3]])[0].change
    assert 0 < favourite_wins < underdog_wins


def test_rookies_move_faster_than_veterans():
    t1 = team((1, 2.5, 0), (2, 2.5, 10))
    t2 = team((3, 2.5, 10), (4, 2.5, 10))

    updates = update_ratings(t1, t2, [[6, 2], [6, 2]])
    assert updates[0].change > updates[1].change > 0


def test_rating_uses_games_not_sets():
    # team 2 wins two sets but team 1 wins more games overall
    t1 = team((1, 2.5, 10), (2, 2.5, 10))
    t2 = team((3, 2.5, 10), (4, 2.5, 10))

    updates = update_ratings(t1, t2, [[6, 0], [5, 7], [5, 7]])
    assert updates[0].change > 0


def test_drawn_games_between_equals_change_nothing():
    t1 = team((1, 2.5, 10), (2, 2.5, 10))
    t2 = team((3, 2.5, 10), (4, 2.5, 10))

    updates = update_ratings(t1, t2, [[6, 4], [4, 6]])
    assert all(u.change == 0 for u in updates)


def test_missing_scores_count_as_zero():
    t1 = team((1, 2.5, 10), (2, 2.5, 10))
    t2 = team((3, 2.5, 10), (4, 2.5, 10))

    assert margin_multiplier(0, 0) == 1.0
    updates = update_ratings(t1, t2, [[None, None], [6, None]])
    assert updates[0].change > 0
    assert update_ratings(t1, t2, []) and update_ratings(t1, t2, None)

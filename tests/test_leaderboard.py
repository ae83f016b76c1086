from decimal import Decimal

import pytest

from app.battles.leaderboard import rank_players, update_leaderboard


def _fresh(*user_ids):
    return {uid: {"score": "0", "rank": None} for uid in user_ids}


def test_increments_are_additive():
    players = _fresh("alice", "bob")
    twice = update_leaderboard(players, "alice", Decimal("2.50"), ["alice", "bob"])
    twice = update_leaderboard(twice, "alice", Decimal("1.25"), ["alice", "bob"])
    once = update_leaderboard(players, "alice", Decimal("3.75"), ["alice", "bob"])
    assert Decimal(twice["alice"]["score"]) == Decimal(once["alice"]["score"]) == Decimal("3.75")


def test_zero_scores_stay_unranked():
    players = update_leaderboard(_fresh("alice", "bob", "carol"), "bob", Decimal("5"), [])
    assert players["bob"]["rank"] == 1
    assert players["alice"]["rank"] is None
    assert players["carol"]["rank"] is None


@pytest.mark.parametrize("scored", [0, 1, 3, 6])
def test_ranks_are_contiguous_without_duplicates(scored):
    order = [f"user{i}" for i in range(6)]
    players = _fresh(*order)
    for i in range(scored):
        players = update_leaderboard(players, order[i], Decimal(i % 2 + 1), order)

    ranks = sorted(e["rank"] for e in players.values() if e["rank"] is not None)
    assert ranks == list(range(1, scored + 1))


def test_sorted_by_score_descending():
    order = ["alice", "bob", "carol"]
    players = _fresh(*order)
    players = update_leaderboard(players, "alice", Decimal("2"), order)
    players = update_leaderboard(players, "carol", Decimal("7"), order)
    players = update_leaderboard(players, "bob", Decimal("4"), order)
    assert players["carol"]["rank"] == 1
    assert players["bob"]["rank"] == 2
    assert players["alice"]["rank"] == 3


def test_ties_go_to_the_earlier_joiner():
    order = ["alice", "bob", "carol"]
    players = _fresh(*order)
    players = update_leaderboard(players, "carol", Decimal("5"), order)
    players = update_leaderboard(players, "alice", Decimal("5"), order)
    assert players["alice"]["rank"] == 1
    assert players["carol"]["rank"] == 2


def test_input_is_not_mutated():
    players = _fresh("alice")
    update_leaderboard(players, "alice", Decimal("1"), ["alice"])
    assert players == {"alice": {"score": "0", "rank": None}}


def test_negative_increment_rejected():
    with pytest.raises(ValueError):
        update_leaderboard(_fresh("alice"), "alice", Decimal("-1"), ["alice"])


def test_rank_players_handles_unknown_users_after_known_ones():
    players = {
        "ghost": {"score": "3", "rank": None},
        "alice": {"score": "3", "rank": None},
    }
    ranked = rank_players(players, ["alice"])
    assert ranked["alice"]["rank"] == 1
    assert ranked["ghost"]["rank"] == 2

"""Leaderboard ranking for a single battle."""

from decimal import Decimal
from typing import Dict, Optional, Sequence

from app.battles.scoring import ZERO, to_decimal


def rank_players(players: Dict[str, dict], order: Sequence[str] = ()) -> Dict[str, dict]:
    """
    Sort by score (descending) and hand out ranks 1..k to nonzero scores.

    Equal scores are ordered by position in ``order`` (the battle's
    active_users, so earlier joiners win ties); users missing from ``order``
    come after, in their existing order. Zero scores get rank None.
    """
    position = {user_id: i for i, user_id in enumerate(order)}
    entries = [
        (user_id, to_decimal(entry.get("score")), idx)
        for idx, (user_id, entry) in enumerate(players.items())
    ]
    entries.sort(key=lambda e: (-e[1], position.get(e[0], len(position)), e[2]))

    ranked: Dict[str, dict] = {}
    next_rank = 1
    for user_id, score, _ in entries:
        rank: Optional[int] = None
        if score != ZERO:
            rank = next_rank
            next_rank += 1
        ranked[user_id] = {"score": str(score), "rank": rank}
    return ranked


def update_leaderboard(
    players: Dict[str, dict],
    user_id: str,
    score_increment: Decimal,
    order: Sequence[str] = (),
) -> Dict[str, dict]:
    """Return a new leaderboard with ``score_increment`` added to ``user_id``."""
    if score_increment < ZERO:
        raise ValueError("Score increment must not be negative")

    updated = {uid: dict(entry) for uid, entry in players.items()}
    entry = updated.setdefault(user_id, {"score": "0", "rank": None})
    entry["score"] = str(to_decimal(entry.get("score")) + to_decimal(score_increment))
    return rank_players(updated, order)

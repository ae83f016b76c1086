"""Battle lifecycle phase, derived from ``started_at`` and ``time_validity``."""

from datetime import datetime, timedelta
from typing import Optional

LOBBY = "lobby"
ARENA = "arena"
COMPLETED = "completed"


def battle_ends_at(started_at: Optional[datetime], time_validity: int) -> Optional[datetime]:
    if started_at is None:
        return None
    return started_at + timedelta(minutes=time_validity)


def is_battle_completed(
    started_at: Optional[datetime],
    time_validity: int,
    now: Optional[datetime] = None,
) -> bool:
    """True once the validity window after the start has fully elapsed."""
    ends_at = battle_ends_at(started_at, time_validity)
    if ends_at is None:
        return False
    return (now or datetime.utcnow()) > ends_at


def battle_phase(battle: dict, now: Optional[datetime] = None) -> str:
    started_at = battle.get("started_at")
    if started_at is None:
        return LOBBY
    if is_battle_completed(started_at, int(battle.get("time_validity") or 0), now):
        return COMPLETED
    return ARENA

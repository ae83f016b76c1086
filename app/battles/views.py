"""Battle API routes."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from pymongo.errors import PyMongoError

from app.battles.models import (
    BattleIdRequest,
    BattleResponse,
    BattleStatusResponse,
    CreateBattleRequest,
    JoinBattleResponse,
    RemoveUserRequest,
    SubmissionScoreResponse,
    UpdateSubmissionRequest,
)
from app.battles.phase import battle_ends_at, battle_phase
from app.battles.service import BattleService, admin_of
from app.core.dependencies import get_current_user, get_status_store
from app.core.exceptions import AppException, StoreUnavailableException
from app.jobs.status import StatusStore


router = APIRouter(prefix="/battle", tags=["Battles"])
logger = logging.getLogger(__name__)


def _to_response(battle: dict) -> BattleResponse:
    ends_at = battle_ends_at(battle.get("started_at"), int(battle.get("time_validity") or 0))
    return BattleResponse(
        id=battle["id"],
        name=battle.get("name", ""),
        created_at=battle["created_at"],
        started_at=battle.get("started_at"),
        ends_at=ends_at,
        time_validity=int(battle.get("time_validity") or 0),
        is_private=bool(battle.get("is_private")),
        admin_id=admin_of(battle),
        active_users=battle.get("active_users") or [],
        questions=battle.get("questions") or [],
        players=battle.get("players") or {},
        phase=battle_phase(battle),
    )


def _failure(action: str, e: Exception) -> AppException:
    if isinstance(e, PyMongoError):
        logger.error(f"{action} failed, database unavailable: {e}")
        return StoreUnavailableException("Battle store unavailable")
    logger.exception(f"{action} failed")
    return AppException(f"Internal Server Error: {type(e).__name__}")


@router.post("/create-battle", response_model=BattleResponse, status_code=status.HTTP_201_CREATED)
async def create_battle(
    body: CreateBattleRequest,
    current_user: dict = Depends(get_current_user),
):
    """Create a battle owned by the caller with randomly drawn questions."""
    try:
        battle = await BattleService.create_battle(
            owner_id=current_user["id"],
            name=body.name,
            is_private=body.is_private,
            time_validity=body.time_validity,
            question_count=body.question_count,
        )
        return _to_response(battle)
    except AppException:
        raise
    except Exception as e:
        raise _failure("Create battle", e) from e


@router.post("/join-battle", response_model=JoinBattleResponse)
async def join_battle(
    body: BattleIdRequest,
    current_user: dict = Depends(get_current_user),
):
    """Join a battle. Joining twice is a no-op."""
    try:
        battle, already_joined = await BattleService.join_battle(body.battle_id, current_user["id"])
    except AppException:
        raise
    except Exception as e:
        raise _failure("Join battle", e) from e

    return JoinBattleResponse(
        battle_id=battle["id"],
        already_joined=already_joined,
        message="User is already a player" if already_joined else "Joined battle",
    )


@router.post("/start-battle", response_model=BattleResponse)
async def start_battle(
    body: BattleIdRequest,
    current_user: dict = Depends(get_current_user),
):
    """Start the battle (admin only, once)."""
    try:
        battle = await BattleService.start_battle(body.battle_id, current_user["id"])
        return _to_response(battle)
    except AppException:
        raise
    except Exception as e:
        raise _failure("Start battle", e) from e


@router.post("/remove-user", response_model=BattleResponse)
async def remove_user(
    body: RemoveUserRequest,
    current_user: dict = Depends(get_current_user),
):
    """Leave a battle, or (admin) remove another user from it."""
    try:
        battle = await BattleService.remove_user(body.battle_id, body.user_id, current_user["id"])
        return _to_response(battle)
    except AppException:
        raise
    except Exception as e:
        raise _failure("Remove user", e) from e


@router.post("/update-submission", response_model=SubmissionScoreResponse)
async def update_submission(
    body: UpdateSubmissionRequest,
    current_user: dict = Depends(get_current_user),
    status_store: StatusStore = Depends(get_status_store),
):
    """Score a judged submission and update the battle leaderboard."""
    try:
        result = await BattleService.update_submission(
            body.submission_id, current_user["id"], status_store
        )
        return SubmissionScoreResponse(**result)
    except AppException:
        raise
    except Exception as e:
        raise _failure("Update submission", e) from e


@router.get("/status", response_model=BattleStatusResponse)
async def get_battle_status(battle_id: str = Query(..., description="Battle id")):
    try:
        battle = await BattleService.get_battle(battle_id)
    except AppException:
        raise
    except Exception as e:
        raise _failure("Battle status", e) from e

    return BattleStatusResponse(
        battle_id=battle["id"],
        phase=battle_phase(battle),
        started_at=battle.get("started_at"),
        ends_at=battle_ends_at(battle.get("started_at"), int(battle.get("time_validity") or 0)),
    )


@router.get("/get-details-by-id", response_model=BattleResponse)
async def get_battle_details(battle_id: str = Query(..., description="Battle id")):
    try:
        battle = await BattleService.get_battle(battle_id)
        return _to_response(battle)
    except AppException:
        raise
    except Exception as e:
        raise _failure("Battle details", e) from e


@router.get("/get-public-battles", response_model=List[BattleResponse])
async def get_public_battles():
    """Public battles that have not started yet."""
    try:
        battles = await BattleService.list_public_battles()
        return [_to_response(b) for b in battles]
    except AppException:
        raise
    except Exception as e:
        raise _failure("List public battles", e) from e

"""Battle request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Literal
from pydantic import BaseModel, Field


BattlePhase = Literal["lobby", "arena", "completed"]


# ============================================================================
# Request Schemas
# ============================================================================

class CreateBattleRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    is_private: bool = False
    time_validity: int = Field(..., ge=1, description="Battle length in minutes")
    question_count: int = Field(..., ge=1, le=5)


class BattleIdRequest(BaseModel):
    battle_id: str


class RemoveUserRequest(BaseModel):
    battle_id: str
    user_id: str


class UpdateSubmissionRequest(BaseModel):
    submission_id: str


# ============================================================================
# Response Schemas
# ============================================================================

class PlayerStanding(BaseModel):
    score: Decimal = Decimal("0")
    rank: Optional[int] = None


class BattleResponse(BaseModel):
    id: str
    name: str
    created_at: datetime
    started_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    time_validity: int
    is_private: bool
    admin_id: Optional[str] = None
    active_users: List[str] = Field(default_factory=list)
    questions: List[str] = Field(default_factory=list)
    players: Dict[str, PlayerStanding] = Field(default_factory=dict)
    phase: BattlePhase


class BattleStatusResponse(BaseModel):
    battle_id: str
    phase: BattlePhase
    started_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


class JoinBattleResponse(BaseModel):
    battle_id: str
    already_joined: bool = False
    message: str


class SubmissionScoreResponse(BaseModel):
    submission_id: str
    battle_id: str
    score: Decimal
    score_increment: Decimal = Decimal("0")
    players: Dict[str, PlayerStanding] = Field(default_factory=dict)

"""Battle service - lifecycle transitions and leaderboard updates.

Every mutation is a single conditional update against the battle document:
either a field-level precondition (``started_at`` still null, user not yet in
``active_users``) or the document ``version`` read just before. A lost race
re-reads the document and re-validates before trying again.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from bson import ObjectId
from pymongo import ReturnDocument

from app.battles.leaderboard import rank_players, update_leaderboard
from app.battles.phase import battle_ends_at
from app.battles.scoring import ZERO, score_submission, to_decimal
from app.core.config import get_settings
from app.core.database import Database
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    NotParticipantException,
)
from app.jobs.status import StatusStore, is_pending, parse_outcomes
from app.questions.service import QuestionService

logger = logging.getLogger(__name__)

MAX_QUESTIONS_PER_BATTLE = 5
PUBLIC_BATTLES_LIMIT = 50


def admin_of(battle: dict) -> Optional[str]:
    active_users = battle.get("active_users") or []
    return active_users[0] if active_users else None


class BattleService:
    """Create/join/start/remove transitions and submission scoring."""

    @staticmethod
    def _battles():
        return Database.get_collection("battles")

    @staticmethod
    def _submissions():
        return Database.get_collection("submissions")

    @staticmethod
    def _attempts() -> int:
        return max(1, int(get_settings().LEADERBOARD_UPDATE_ATTEMPTS))

    @staticmethod
    def _object_id(battle_id: str) -> ObjectId:
        if not battle_id or not ObjectId.is_valid(battle_id):
            raise NotFoundException("Battle not found")
        return ObjectId(battle_id)

    @staticmethod
    def _to_public(doc: dict) -> dict:
        doc["id"] = str(doc.pop("_id"))
        doc.setdefault("players", {})
        doc.setdefault("version", 0)
        return doc

    # ========================================================================
    # Reads
    # ========================================================================

    @classmethod
    async def get_battle(cls, battle_id: str) -> dict:
        doc = await cls._battles().find_one({"_id": cls._object_id(battle_id)})
        if not doc:
            raise NotFoundException("Battle not found")
        return cls._to_public(doc)

    @classmethod
    async def list_public_battles(cls) -> List[dict]:
        """Public battles still waiting in the lobby, newest first."""
        cursor = (
            cls._battles()
            .find({"is_private": False, "started_at": None})
            .sort("created_at", -1)
            .limit(PUBLIC_BATTLES_LIMIT)
        )
        docs = await cursor.to_list(length=PUBLIC_BATTLES_LIMIT)
        return [cls._to_public(d) for d in docs]

    # ========================================================================
    # Transitions
    # ========================================================================

    @classmethod
    async def create_battle(
        cls,
        owner_id: str,
        name: str,
        is_private: bool,
        time_validity: int,
        question_count: int,
    ) -> dict:
        if not 1 <= question_count <= MAX_QUESTIONS_PER_BATTLE:
            raise BadRequestException(
                f"question_count must be between 1 and {MAX_QUESTIONS_PER_BATTLE}"
            )
        if time_validity < 1:
            raise BadRequestException("time_validity must be at least 1 minute")

        questions = await QuestionService.sample_question_ids(question_count)
        doc = {
            "name": name,
            "created_at": datetime.utcnow(),
            "started_at": None,
            "time_validity": int(time_validity),
            "is_private": bool(is_private),
            "active_users": [owner_id],
            "questions": questions,
            "players": {},
            "best_scores": {},
            "version": 0,
        }
        result = await cls._battles().insert_one(doc)
        logger.info(f"Battle {result.inserted_id} created by {owner_id}")
        doc["_id"] = result.inserted_id
        return cls._to_public(doc)

    @classmethod
    async def join_battle(cls, battle_id: str, user_id: str) -> Tuple[dict, bool]:
        """
        Add ``user_id`` to the battle. Returns (battle, already_joined).

        Joining after the start is allowed; late joiners enter the
        leaderboard with a zero score.
        """
        oid = cls._object_id(battle_id)
        battle = await cls.get_battle(battle_id)

        for _ in range(cls._attempts()):
            if user_id in battle["active_users"]:
                return battle, True

            update = {"$push": {"active_users": user_id}, "$inc": {"version": 1}}
            if battle.get("started_at") is None:
                query = {"_id": oid, "started_at": None, "active_users": {"$ne": user_id}}
            else:
                players = dict(battle["players"])
                players[user_id] = {"score": "0", "rank": None}
                update["$set"] = {
                    "players": rank_players(players, battle["active_users"] + [user_id])
                }
                query = {"_id": oid, "version": battle["version"]}

            doc = await cls._battles().find_one_and_update(
                query, update, return_document=ReturnDocument.AFTER
            )
            if doc:
                logger.info(f"User {user_id} joined battle {battle_id}")
                return cls._to_public(doc), False
            battle = await cls.get_battle(battle_id)

        raise ConflictException("Battle is busy, please retry")

    @classmethod
    async def start_battle(cls, battle_id: str, caller_id: str) -> dict:
        """Admin-only, exactly once. Snapshots the current users as players."""
        oid = cls._object_id(battle_id)
        battle = await cls.get_battle(battle_id)

        for _ in range(cls._attempts()):
            if caller_id != admin_of(battle):
                raise ForbiddenException("Only the battle admin can start the battle")
            if battle.get("started_at") is not None:
                raise ConflictException("Battle already started")

            players = {uid: {"score": "0", "rank": None} for uid in battle["active_users"]}
            doc = await cls._battles().find_one_and_update(
                {"_id": oid, "started_at": None, "version": battle["version"]},
                {
                    "$set": {"started_at": datetime.utcnow(), "players": players},
                    "$inc": {"version": 1},
                },
                return_document=ReturnDocument.AFTER,
            )
            if doc:
                logger.info(f"Battle {battle_id} started with {len(players)} players")
                return cls._to_public(doc)
            battle = await cls.get_battle(battle_id)

        raise ConflictException("Battle is busy, please retry")

    @classmethod
    async def remove_user(cls, battle_id: str, target_user_id: str, caller_id: str) -> dict:
        """A user may leave; the admin may remove anyone."""
        oid = cls._object_id(battle_id)
        battle = await cls.get_battle(battle_id)

        for _ in range(cls._attempts()):
            active_users = battle["active_users"]
            admin_id = admin_of(battle)
            if caller_id != target_user_id and caller_id != admin_id:
                raise ForbiddenException("Only the battle admin can remove other users")
            if target_user_id not in active_users:
                raise NotParticipantException()
            if target_user_id == admin_id and len(active_users) > 1:
                raise ConflictException("The battle admin cannot leave while other users remain")

            remaining = [uid for uid in active_users if uid != target_user_id]
            players = {
                uid: entry for uid, entry in battle["players"].items() if uid != target_user_id
            }
            doc = await cls._battles().find_one_and_update(
                {"_id": oid, "version": battle["version"]},
                {
                    "$set": {"active_users": remaining, "players": rank_players(players, remaining)},
                    "$inc": {"version": 1},
                },
                return_document=ReturnDocument.AFTER,
            )
            if doc:
                logger.info(f"User {target_user_id} removed from battle {battle_id} by {caller_id}")
                return cls._to_public(doc)
            battle = await cls.get_battle(battle_id)

        raise ConflictException("Battle is busy, please retry")

    # ========================================================================
    # Scoring
    # ========================================================================

    @classmethod
    async def update_submission(
        cls,
        submission_id: str,
        caller_id: str,
        status_store: StatusStore,
    ) -> dict:
        """
        Score a judged submission and fold it into the battle leaderboard.

        Only improvements count: the leaderboard grows by the difference
        between this score and the user's best so far on the same question.
        The best-so-far lives on the battle document and is updated in the
        same conditional write as the leaderboard, so repeating the call
        never adds points twice.
        """
        submission = await cls._submissions().find_one({"_id": submission_id})
        if not submission:
            raise NotFoundException("Submission not found")
        if submission.get("user_id") != caller_id:
            raise ForbiddenException("Only the author can score this submission")
        battle_id = submission.get("battle_id")
        if not battle_id:
            raise ConflictException("Submission is not linked to a battle")

        status_value = await status_store.get(submission_id)
        if is_pending(status_value):
            raise ConflictException("Submission is still being judged")

        question_id = submission["question_id"]
        question = await QuestionService.get_question(question_id)
        outcomes = parse_outcomes(status_value) or []
        score = score_submission(
            outcomes, len(question.get("test_cases") or []), question.get("points")
        )

        await cls._submissions().update_one(
            {"_id": submission_id},
            {"$set": {"score": str(score), "status": status_value, "scored_at": datetime.utcnow()}},
        )

        battle, increment = await cls._apply_score(
            battle_id, caller_id, question_id, score, submission.get("created_at")
        )

        return {
            "submission_id": submission_id,
            "battle_id": battle_id,
            "score": score,
            "score_increment": increment,
            "players": battle.get("players") or {},
        }

    @classmethod
    async def _apply_score(
        cls,
        battle_id: str,
        user_id: str,
        question_id: str,
        score: Decimal,
        submitted_at: Optional[datetime],
    ) -> Tuple[dict, Decimal]:
        oid = cls._object_id(battle_id)
        battle = await cls.get_battle(battle_id)

        if score == ZERO:
            return battle, ZERO

        for _ in range(cls._attempts()):
            if user_id not in battle["players"]:
                logger.info(f"User {user_id} no longer plays battle {battle_id}; score not ranked")
                return battle, ZERO
            ends_at = battle_ends_at(battle.get("started_at"), int(battle.get("time_validity") or 0))
            if submitted_at and ends_at and submitted_at > ends_at:
                return battle, ZERO

            best_scores = {uid: dict(per_q) for uid, per_q in (battle.get("best_scores") or {}).items()}
            previous_best = to_decimal(best_scores.get(user_id, {}).get(question_id))
            if score <= previous_best:
                return battle, ZERO

            increment = score - previous_best
            best_scores.setdefault(user_id, {})[question_id] = str(score)
            players = update_leaderboard(
                battle["players"], user_id, increment, battle["active_users"]
            )
            doc = await cls._battles().find_one_and_update(
                {"_id": oid, "version": battle["version"]},
                {
                    "$set": {"players": players, "best_scores": best_scores},
                    "$inc": {"version": 1},
                },
                return_document=ReturnDocument.AFTER,
            )
            if doc:
                logger.info(f"Battle {battle_id}: {user_id} +{increment} on question {question_id}")
                return cls._to_public(doc), increment
            battle = await cls.get_battle(battle_id)

        raise ConflictException("Leaderboard is busy, please retry")

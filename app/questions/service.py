"""Question bank service."""

import random
from datetime import datetime
from typing import List

from bson import ObjectId

from app.core.database import Database
from app.core.exceptions import ConflictException, NotFoundException
from app.questions.models import QuestionCreate, QuestionResponse


class QuestionService:
    """Read/write access to the ``questions`` collection."""

    @staticmethod
    def _collection():
        return Database.get_collection("questions")

    @classmethod
    async def get_question(cls, question_id: str) -> dict:
        """Raw question document, including hidden test cases and solution."""
        if not question_id or not ObjectId.is_valid(question_id):
            raise NotFoundException("Question not found")

        doc = await cls._collection().find_one({"_id": ObjectId(question_id)})
        if not doc:
            raise NotFoundException("Question not found")

        doc["id"] = str(doc.pop("_id"))
        return doc

    @classmethod
    async def list_questions(cls) -> List[dict]:
        cursor = cls._collection().find({}).sort("created_at", 1)
        docs = await cursor.to_list(length=None)
        for doc in docs:
            doc["id"] = str(doc.pop("_id"))
        return docs

    @classmethod
    async def create_question(cls, data: QuestionCreate, author_id: str) -> dict:
        doc = {
            "title": data.title,
            "description": data.description,
            # Stored as a string so Mongo keeps the exact decimal value.
            "points": str(data.points),
            "test_cases": list(data.test_cases),
            "solution": data.solution.model_dump(),
            "author_id": author_id,
            "created_at": datetime.utcnow(),
        }
        result = await cls._collection().insert_one(doc)
        doc["id"] = str(result.inserted_id)
        doc.pop("_id", None)
        return doc

    @classmethod
    async def sample_question_ids(cls, count: int) -> List[str]:
        """Pick ``count`` distinct question ids uniformly from the whole pool."""
        cursor = cls._collection().find({}, {"_id": 1})
        docs = await cursor.to_list(length=None)
        pool = [str(d["_id"]) for d in docs]
        if len(pool) < count:
            raise ConflictException(
                f"Not enough questions: requested {count}, only {len(pool)} available"
            )
        return random.sample(pool, count)


def to_response(doc: dict) -> QuestionResponse:
    return QuestionResponse(
        id=doc["id"],
        title=doc.get("title", ""),
        description=doc.get("description", "") or "",
        points=doc.get("points") or "0",
        test_case_count=len(doc.get("test_cases") or []),
        created_at=doc.get("created_at"),
    )

#!/usr/bin/env python3
"""
Seed script for the questions collection.

Reads a JSON array of questions:

    [{"title": "...", "description": "...", "points": 10,
      "test_cases": ["1 2", "3 4"],
      "solution": {"language": "py", "code": "..."}}]

Each entry is validated with the same model the API uses and upserted by
title, so re-running the script updates questions in place.
"""

import argparse
import asyncio
import json
import os
import sys
from datetime import datetime
from pathlib import Path

import certifi
from motor.motor_asyncio import AsyncIOMotorClient

# Make app package importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import get_settings
from app.questions.models import QuestionCreate


def get_client(uri: str) -> AsyncIOMotorClient:
    """Create Mongo client with TLS if needed."""
    client_kwargs = {}
    if "mongodb+srv://" in uri or "ssl=true" in uri.lower():
        client_kwargs["tlsCAFile"] = certifi.where()
    return AsyncIOMotorClient(uri, **client_kwargs)


async def seed_questions(path: Path):
    settings = get_settings()
    client = get_client(settings.MONGO_URI)
    collection = client[settings.MONGO_DB_NAME]["questions"]

    if not path.exists():
        raise FileNotFoundError(f"Questions file not found at {path}")
    raw = json.loads(path.read_text(encoding="utf-8"))

    now = datetime.utcnow()
    count = 0
    for item in raw:
        question = QuestionCreate(**item)
        await collection.update_one(
            {"title": question.title},
            {
                "$set": {
                    "description": question.description,
                    "points": str(question.points),
                    "test_cases": list(question.test_cases),
                    "solution": question.solution.model_dump(),
                },
                "$setOnInsert": {"created_at": now, "author_id": "seed"},
            },
            upsert=True,
        )
        count += 1

    print(f"Seeded {count} questions")
    client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the questions collection")
    parser.add_argument("path", type=Path, help="JSON file with a list of questions")
    args = parser.parse_args()
    asyncio.run(seed_questions(args.path))

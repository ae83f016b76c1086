"""Job status store (Mongo-backed key/value).

Values are the literal ``"Queued"``, a worker error string, or a JSON array
of per-test-case outcomes written by the execution worker.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import List, Optional

from pymongo.errors import PyMongoError

from app.core.database import Database
from app.core.exceptions import StoreUnavailableException

logger = logging.getLogger(__name__)

QUEUED = "Queued"
SUCCESS = "Success"


class StatusStore:
    """Flat key space: one document per job id, ``{_id, value, updated_at}``."""

    def __init__(self, collection_name: str = "job_status"):
        self.collection_name = collection_name

    def _collection(self):
        return Database.get_collection(self.collection_name)

    async def get(self, key: str) -> Optional[str]:
        try:
            doc = await self._collection().find_one({"_id": key})
        except PyMongoError as e:
            logger.error(f"Status read failed for {key}: {e}")
            raise StoreUnavailableException() from e
        return doc.get("value") if doc else None

    async def set(self, key: str, value: str) -> None:
        try:
            await self._collection().update_one(
                {"_id": key},
                {"$set": {"value": value, "updated_at": datetime.utcnow()}},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"Status write failed for {key}: {e}")
            raise StoreUnavailableException() from e

    async def delete(self, key: str) -> None:
        try:
            await self._collection().delete_one({"_id": key})
        except PyMongoError as e:
            logger.error(f"Status delete failed for {key}: {e}")
            raise StoreUnavailableException() from e


def parse_outcomes(value: Optional[str]) -> Optional[List[str]]:
    """
    Decode a terminal worker result into its list of outcomes.

    Returns None while the job is still queued, when nothing was recorded,
    or when the worker wrote an error string instead of a result array.
    """
    if value is None or value == QUEUED:
        return None
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        return None
    if not isinstance(decoded, list):
        return None
    return [str(item) for item in decoded]


def is_pending(value: Optional[str]) -> bool:
    return value is None or value == QUEUED

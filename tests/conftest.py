"""Shared fixtures: in-memory Mongo (mongomock-motor) and broker (kombu memory://)."""

import asyncio
import json
from datetime import datetime

import pytest
from bson import ObjectId
from celery import Celery
from mongomock_motor import AsyncMongoMockClient

from app.auth.service import AuthService
from app.core.database import Database
from app.jobs.queue import JobQueueClient
from app.jobs.service import JobDispatchService
from app.jobs.status import StatusStore
from app.worker.celery_app import JOB_QUEUES


@pytest.fixture(autouse=True)
def mongo():
    client = AsyncMongoMockClient()
    Database.client = client
    Database.db = client["codebattle_test"]
    yield Database.db
    Database.client = None
    Database.db = None


def _purge(app: Celery) -> None:
    with app.connection_for_write() as conn:
        for name in JOB_QUEUES:
            conn.default_channel.queue_purge(name)


@pytest.fixture
def broker_app():
    app = Celery("codebattle-test", broker="memory://")
    _purge(app)
    yield app
    _purge(app)


@pytest.fixture
def queue_client(broker_app):
    return JobQueueClient(broker_app, attempts=3, backoff_seconds=0)


@pytest.fixture
def status_store():
    return StatusStore()


@pytest.fixture
def dispatcher(queue_client, status_store):
    return JobDispatchService(queue_client, status_store)


def drain(app: Celery, queue_name: str) -> list:
    """Pop every message currently waiting on ``queue_name`` as decoded JSON."""
    bodies = []
    with app.connection_for_read() as conn:
        channel = conn.default_channel
        while True:
            message = channel.basic_get(queue_name, no_ack=True)
            if message is None:
                break
            bodies.append(json.loads(message.body))
    return bodies


def run(coro):
    return asyncio.run(coro)


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {AuthService.create_access_token(user_id)}"}


async def insert_question(
    points="10",
    test_cases=("1", "2", "3", "4"),
    solution=None,
    title="Sum",
) -> str:
    oid = ObjectId()
    await Database.get_collection("questions").insert_one({
        "_id": oid,
        "title": title,
        "description": "",
        "points": points,
        "test_cases": list(test_cases),
        "solution": {"language": "py", "code": "print(1)"} if solution is None else solution,
        "created_at": datetime.utcnow(),
    })
    return str(oid)

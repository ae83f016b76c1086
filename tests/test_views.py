"""End-to-end HTTP flow through the FastAPI routers."""

import json

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from app.battles.service import BattleService
from app.main import build_services, create_app
from app.questions.service import QuestionService

from tests.conftest import auth_headers, drain, run


@pytest.fixture
def client(queue_client, status_store):
    app = create_app(use_lifespan=False)
    build_services(app, queue_client, status_store)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    assert client.get("/").json()["status"] == "healthy"
    assert client.get("/health").json()["database"] == "connected"


def test_run_and_poll(client, broker_app):
    r = client.post("/code/run", json={"language": "py", "code": "print(42)"})
    assert r.status_code == 200
    job_id = r.json()

    r = client.get(f"/code/status/{job_id}")
    assert r.json() == {"value": "Queued"}
    assert drain(broker_app, "singleExecutionJobs")[0]["folder_name"] == job_id


def test_run_reports_missing_fields(client, broker_app):
    r = client.post("/code/run", json={"code": "print(42)"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Language Not Received"

    r = client.post("/code/run", json={"language": "rb", "code": "puts 1"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Language Not Supported: rb"

    assert drain(broker_app, "singleExecutionJobs") == []


def test_unknown_status_is_null(client):
    assert client.get("/code/status/deadbeef").json() == {"value": None}


def test_question_submit_requires_auth(client):
    r = client.post("/code/question-submit?question_id=abc", json={"language": "py", "code": "1"})
    assert r.status_code == 401


def test_question_bank_hides_solutions(client):
    r = client.post(
        "/question/create-question",
        json={
            "title": "Echo",
            "points": "10",
            "test_cases": ["1", "2"],
            "solution": {"language": "py", "code": "print(input())"},
        },
        headers=auth_headers("alice"),
    )
    assert r.status_code == 201
    question_id = r.json()["id"]

    questions = client.get("/question/all-questions").json()
    assert [q["id"] for q in questions] == [question_id]
    assert "solution" not in questions[0]
    assert "test_cases" not in questions[0]
    assert questions[0]["test_case_count"] == 2


def test_battle_flow(client, status_store):
    alice, bob = auth_headers("alice"), auth_headers("bob")
    question = {
        "title": "Double",
        "points": "10",
        "test_cases": ["1", "2", "3", "4"],
        "solution": {"language": "py", "code": "print(2 * int(input()))"},
    }
    question_id = client.post("/question/create-question", json=question, headers=alice).json()["id"]

    r = client.post(
        "/battle/create-battle",
        json={"name": "Friday duel", "time_validity": 1, "question_count": 1},
        headers=alice,
    )
    assert r.status_code == 201
    battle_id = r.json()["id"]
    assert r.json()["phase"] == "lobby"
    assert r.json()["questions"] == [question_id]

    public = client.get("/battle/get-public-battles").json()
    assert [b["id"] for b in public] == [battle_id]

    r = client.post("/battle/join-battle", json={"battle_id": battle_id}, headers=bob)
    assert r.json()["already_joined"] is False
    r = client.post("/battle/join-battle", json={"battle_id": battle_id}, headers=bob)
    assert r.json()["already_joined"] is True

    assert client.post("/battle/start-battle", json={"battle_id": battle_id}, headers=bob).status_code == 403
    r = client.post("/battle/start-battle", json={"battle_id": battle_id}, headers=alice)
    assert r.status_code == 200
    assert r.json()["phase"] == "arena"
    assert client.post("/battle/start-battle", json={"battle_id": battle_id}, headers=alice).status_code == 409

    r = client.get("/battle/status", params={"battle_id": battle_id})
    assert r.json()["phase"] == "arena"

    r = client.post(
        "/code/question-submit",
        params={"question_id": question_id, "battle_id": battle_id},
        json={"language": "py", "code": "print(2 * int(input()))"},
        headers=alice,
    )
    assert r.status_code == 200
    submission_id = r.json()

    r = client.post("/battle/update-submission", json={"submission_id": submission_id}, headers=alice)
    assert r.status_code == 409

    # The execution worker writes its verdict.
    run(status_store.set(submission_id, json.dumps(["Success", "Success", "Fail", "Fail"])))

    r = client.post("/battle/update-submission", json={"submission_id": submission_id}, headers=alice)
    assert r.status_code == 200
    body = r.json()
    assert body["score"] == "5.00"
    assert body["players"]["alice"] == {"score": "5.00", "rank": 1}
    assert body["players"]["bob"] == {"score": "0", "rank": None}

    details = client.get("/battle/get-details-by-id", params={"battle_id": battle_id}).json()
    assert details["admin_id"] == "alice"
    assert details["players"]["alice"]["rank"] == 1

    assert client.get("/battle/get-public-battles").json() == []


def test_unknown_battle_is_404(client):
    r = client.get("/battle/get-details-by-id", params={"battle_id": "nope"})
    assert r.status_code == 404


class _UnavailableCollection:
    async def find_one(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("no servers")

    async def find_one_and_update(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("no servers")


def test_database_outage_is_a_500_with_detail(client, monkeypatch):
    monkeypatch.setattr(BattleService, "_battles", staticmethod(lambda: _UnavailableCollection()))
    monkeypatch.setattr(QuestionService, "_collection", staticmethod(lambda: _UnavailableCollection()))
    battle_id = str(ObjectId())

    r = client.get("/battle/get-details-by-id", params={"battle_id": battle_id})
    assert r.status_code == 500
    assert r.json() == {"detail": "Battle store unavailable"}

    r = client.post("/battle/join-battle", json={"battle_id": battle_id}, headers=auth_headers("bob"))
    assert r.status_code == 500
    assert r.json() == {"detail": "Battle store unavailable"}

    r = client.get(f"/question/{ObjectId()}")
    assert r.status_code == 500
    assert r.json() == {"detail": "Question store unavailable"}

    r = client.post(
        "/code/question-run",
        params={"question_id": str(ObjectId())},
        json={"language": "py", "code": "print(1)"},
    )
    assert r.status_code == 500
    assert r.json() == {"detail": "Database unavailable"}

import asyncio
import time

import pytest
from kombu import Producer

from app.core.exceptions import QueueUnavailableException
from app.jobs.queue import JobQueueClient

from tests.conftest import drain, run

SINGLE = "singleExecutionJobs"
MULTI = "multiExecutionJobs"


def test_publishes_raw_json_to_the_named_queue(broker_app, queue_client):
    run(queue_client.enqueue(SINGLE, b'{"language": "py", "code": "print(1)"}'))

    assert drain(broker_app, SINGLE) == [{"language": "py", "code": "print(1)"}]
    assert drain(broker_app, MULTI) == []


def test_channel_is_opened_lazily_and_reused(broker_app, queue_client, monkeypatch):
    opened = []
    original = queue_client._connect

    def counting_connect():
        opened.append(1)
        return original()

    monkeypatch.setattr(queue_client, "_connect", counting_connect)
    assert not queue_client.connected

    async def scenario():
        await queue_client.enqueue(SINGLE, b"{}")
        await queue_client.enqueue(MULTI, b"{}")

    run(scenario())
    assert queue_client.connected
    assert len(opened) == 1
    assert len(drain(broker_app, SINGLE)) == 1
    assert len(drain(broker_app, MULTI)) == 1


def test_concurrent_first_use_opens_one_channel(broker_app, queue_client, monkeypatch):
    opened = []
    original = queue_client._connect

    def slow_connect():
        opened.append(1)
        time.sleep(0.05)
        return original()

    monkeypatch.setattr(queue_client, "_connect", slow_connect)

    async def scenario():
        await asyncio.gather(*(queue_client.enqueue(SINGLE, b"{}") for _ in range(5)))

    run(scenario())
    assert len(opened) == 1
    assert len(drain(broker_app, SINGLE)) == 5


def test_retry_is_bounded(broker_app, monkeypatch):
    client = JobQueueClient(broker_app, attempts=3, backoff_seconds=0)
    calls = []

    def broken_connect():
        calls.append(1)
        raise ConnectionError("broker down")

    monkeypatch.setattr(client, "_connect", broken_connect)

    with pytest.raises(QueueUnavailableException) as exc:
        run(client.enqueue(SINGLE, b"{}"))

    assert exc.value.status_code == 500
    assert len(calls) == 3
    assert not client.connected


def test_recovers_when_a_later_attempt_succeeds(broker_app, monkeypatch):
    client = JobQueueClient(broker_app, attempts=3, backoff_seconds=0)
    original = client._connect
    calls = []

    def flaky_connect():
        calls.append(1)
        if len(calls) == 1:
            raise ConnectionError("not yet")
        return original()

    monkeypatch.setattr(client, "_connect", flaky_connect)
    run(client.enqueue(SINGLE, b'{"n": 1}'))

    assert len(calls) == 2
    assert drain(broker_app, SINGLE) == [{"n": 1}]


def test_unknown_queue_is_rejected(queue_client):
    with pytest.raises(ValueError):
        run(queue_client.enqueue("nope", b"{}"))


def test_close_drops_the_channel(queue_client):
    async def scenario():
        await queue_client.enqueue(SINGLE, b"{}")
        await queue_client.close()

    run(scenario())
    assert not queue_client.connected


def test_publish_does_not_block_the_event_loop(queue_client, monkeypatch):
    def slow_publish(self, body, **kwargs):
        time.sleep(0.3)

    monkeypatch.setattr(Producer, "publish", slow_publish)

    async def scenario():
        gaps = []
        done = asyncio.Event()

        async def ticker():
            last = time.monotonic()
            while not done.is_set():
                await asyncio.sleep(0.02)
                now = time.monotonic()
                gaps.append(now - last)
                last = now

        task = asyncio.create_task(ticker())
        await queue_client.enqueue(SINGLE, b"{}")
        done.set()
        await task
        return max(gaps)

    assert run(scenario()) < 0.1


class _RefusingConnection:
    def __init__(self):
        self.released = False

    def ensure_connection(self, **kwargs):
        raise ConnectionError("connection refused")

    def release(self):
        self.released = True


def test_failed_connect_releases_the_connection(broker_app, monkeypatch):
    opened = []

    def refusing_connection():
        opened.append(_RefusingConnection())
        return opened[-1]

    monkeypatch.setattr(broker_app, "connection_for_write", refusing_connection)
    client = JobQueueClient(broker_app, attempts=2, backoff_seconds=0)

    with pytest.raises(QueueUnavailableException):
        run(client.enqueue(SINGLE, b"{}"))

    assert len(opened) == 2
    assert all(conn.released for conn in opened)


def test_failure_on_a_stale_channel_keeps_the_current_one(broker_app, queue_client):
    async def scenario():
        await queue_client.enqueue(SINGLE, b"{}")
        current = queue_client._producer
        stale = Producer(current.channel)
        await queue_client._discard(stale)
        return current

    current = run(scenario())
    assert queue_client._producer is current
    assert queue_client.connected
    assert len(drain(broker_app, SINGLE)) == 1

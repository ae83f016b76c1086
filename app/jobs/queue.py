"""Job queue client: raw JSON jobs published to the execution broker."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Tuple

from celery import Celery
from kombu import Connection, Producer, Queue

from app.core.config import get_settings
from app.core.exceptions import QueueUnavailableException
from app.worker.celery_app import JOB_QUEUES, celery_app

logger = logging.getLogger(__name__)


class JobQueueClient:
    """
    Publishes job payloads onto named broker queues.

    One broker channel is shared by every request in the process. It is
    opened on the first enqueue (single flight, guarded by an asyncio lock),
    reused afterwards, and dropped whenever a publish fails so the next
    attempt reconnects.
    """

    def __init__(
        self,
        app: Optional[Celery] = None,
        *,
        queues: Optional[Dict[str, Queue]] = None,
        attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self._app = app or celery_app
        self._queues = dict(queues or JOB_QUEUES)
        self._attempts = max(1, int(attempts if attempts is not None else settings.QUEUE_PUBLISH_ATTEMPTS))
        self._backoff = float(
            backoff_seconds if backoff_seconds is not None else settings.QUEUE_RETRY_BACKOFF_SECONDS
        )
        self._connection: Optional[Connection] = None
        self._producer: Optional[Producer] = None
        self._lock = asyncio.Lock()
        self._publish_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._producer is not None

    def _connect(self) -> Tuple[Connection, Producer]:
        connection = self._app.connection_for_write()
        try:
            connection.ensure_connection(max_retries=1)
            producer = Producer(connection.channel())
        except Exception:
            connection.release()
            raise
        logger.info(f"Broker channel opened: {connection.as_uri()}")
        return connection, producer

    async def _get_producer(self) -> Producer:
        if self._producer is not None:
            return self._producer
        async with self._lock:
            if self._producer is None:
                self._connection, self._producer = await asyncio.to_thread(self._connect)
            return self._producer

    def _release(self) -> None:
        connection = self._connection
        self._connection = None
        self._producer = None
        if connection is None:
            return
        try:
            connection.release()
        except Exception as e:
            logger.debug(f"Ignoring error while releasing broker connection: {e}")

    async def _discard(self, producer: Optional[Producer]) -> None:
        """Drop the shared channel, unless it has already been replaced."""
        async with self._lock:
            if producer is not None and producer is self._producer:
                self._release()

    async def enqueue(self, queue_name: str, payload: bytes) -> None:
        """
        Publish ``payload`` to ``queue_name``.

        Retries the same message with exponential backoff; raises
        QueueUnavailableException once every attempt has failed. Returning
        normally means the broker accepted the message, not that a worker
        picked it up. The publish itself runs in a worker thread since it
        blocks until the broker confirms.
        """
        queue = self._queues.get(queue_name)
        if queue is None:
            raise ValueError(f"Unknown job queue: {queue_name}")

        delay = self._backoff
        last_error: Optional[Exception] = None
        for attempt in range(1, self._attempts + 1):
            producer = None
            try:
                producer = await self._get_producer()
                # kombu channels are not thread-safe
                async with self._publish_lock:
                    await asyncio.to_thread(
                        producer.publish,
                        payload,
                        exchange="",
                        routing_key=queue.name,
                        declare=[queue],
                        content_type="application/json",
                        content_encoding="utf-8",
                        delivery_mode=2,
                    )
                return
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Publish to {queue_name} failed (attempt {attempt}/{self._attempts}): "
                    f"{type(e).__name__}: {e}"
                )
                await self._discard(producer)
                if attempt < self._attempts:
                    await asyncio.sleep(delay)
                    delay *= 2

        logger.error(f"Giving up on publish to {queue_name} after {self._attempts} attempts")
        raise QueueUnavailableException("Failed to enqueue job. Check broker configuration.") from last_error

    async def close(self) -> None:
        async with self._lock:
            self._release()

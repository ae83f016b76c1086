"""Celery app bootstrap (RabbitMQ broker).

Execution workers live in a separate deployment and consume the raw JSON
job queues declared here. The API process only uses this app for its broker
configuration and connection pool.
"""

from __future__ import annotations

from celery import Celery
from kombu import Exchange, Queue

from app.core.config import get_settings


settings = get_settings()

BROKER_URL = (settings.BROKER_URL or "memory://").strip()

# Default (nameless) exchange: routing key == queue name.
DEFAULT_EXCHANGE = Exchange("", type="direct")

SINGLE_EXECUTION_QUEUE = Queue(
    settings.SINGLE_EXECUTION_QUEUE,
    exchange=DEFAULT_EXCHANGE,
    routing_key=settings.SINGLE_EXECUTION_QUEUE,
    durable=True,
)
MULTI_EXECUTION_QUEUE = Queue(
    settings.MULTI_EXECUTION_QUEUE,
    exchange=DEFAULT_EXCHANGE,
    routing_key=settings.MULTI_EXECUTION_QUEUE,
    durable=True,
)

JOB_QUEUES = {
    SINGLE_EXECUTION_QUEUE.name: SINGLE_EXECUTION_QUEUE,
    MULTI_EXECUTION_QUEUE.name: MULTI_EXECUTION_QUEUE,
}

celery_app = Celery("codebattle", broker=BROKER_URL)

transport_options: dict = {}
if BROKER_URL.startswith(("amqp", "pyamqp")):
    # Broker acks each publish before basic_publish returns.
    transport_options["confirm_publish"] = True

celery_app.conf.update(
    broker_transport_options=transport_options,
    broker_connection_retry_on_startup=True,
    task_queues=list(JOB_QUEUES.values()),
    task_default_queue=SINGLE_EXECUTION_QUEUE.name,
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
)

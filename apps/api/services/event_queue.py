"""Durable webhook delivery queue helpers (Redis/RQ)."""

from __future__ import annotations

from typing import Any, Dict

from redis import Redis
from rq import Queue
from rq.job import Job

from config import settings


WEBHOOK_QUEUE_NAME = "webhook_events"


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_webhook_queue() -> Queue:
    """Return the configured webhook delivery queue."""
    return Queue(
        name=WEBHOOK_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=300,
    )


def enqueue_webhook_delivery(body: Dict[str, Any]) -> Job:
    """Enqueue a verified delivery for the worker. Jobs are not retried."""
    queue = get_webhook_queue()
    return queue.enqueue(
        "services.webhook_pipeline.process_delivery_job",
        body,
        job_timeout=300,
        result_ttl=3600,
        failure_ttl=86400,
    )

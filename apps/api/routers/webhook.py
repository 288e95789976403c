"""
Meta webhook endpoints: subscription handshake and signed event delivery.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from redis.exceptions import RedisError

from config import settings
from services.errors import SignatureInvalid
from services.event_queue import enqueue_webhook_delivery
from services.event_tasks import EventTaskRunner
from services.signature import verify_signature, verify_subscription
from services.webhook_pipeline import WebhookPipeline, build_webhook_pipeline

router = APIRouter()
logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-hub-signature-256"


def get_webhook_pipeline(request: Request) -> WebhookPipeline:
    pipeline = getattr(request.app.state, "webhook_pipeline", None)
    if pipeline is None:
        pipeline = build_webhook_pipeline()
        request.app.state.webhook_pipeline = pipeline
    return pipeline


def get_event_task_runner(request: Request) -> EventTaskRunner:
    runner = getattr(request.app.state, "event_task_runner", None)
    if runner is None:
        runner = EventTaskRunner(grace_seconds=settings.WEBHOOK_SHUTDOWN_GRACE_SECONDS)
        runner.start()
        request.app.state.event_task_runner = runner
    return runner


def _parse_body(raw_body: bytes) -> Dict[str, Any]:
    try:
        body = json.loads(raw_body)
    except (UnicodeDecodeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Body is not valid JSON.") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object.")
    return body


@router.get("/meta", response_class=PlainTextResponse)
async def verify_webhook_subscription(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
):
    """Echo the challenge when the subscription handshake is valid."""
    try:
        return PlainTextResponse(verify_subscription(mode, verify_token, challenge, settings.META_VERIFY_TOKEN))
    except SignatureInvalid as exc:
        logger.warning("Webhook subscription verification failed: %s", exc)
        raise HTTPException(status_code=403, detail="Forbidden") from exc


@router.post("/meta", response_class=PlainTextResponse)
async def receive_webhook(
    request: Request,
    pipeline: WebhookPipeline = Depends(get_webhook_pipeline),
    runner: EventTaskRunner = Depends(get_event_task_runner),
):
    """
    Verify the delivery signature and acknowledge immediately.

    Processing happens after the response: on the in-process task runner, or
    on the RQ worker when WEBHOOK_PROCESSING_BACKEND is "rq".
    """
    raw_body = await request.body()
    try:
        verify_signature(raw_body, request.headers.get(SIGNATURE_HEADER), settings.META_APP_SECRET)
    except SignatureInvalid as exc:
        logger.warning("Rejected webhook delivery: %s", exc)
        raise HTTPException(status_code=403, detail="Invalid signature") from exc

    body = _parse_body(raw_body)

    if settings.WEBHOOK_PROCESSING_BACKEND == "rq":
        try:
            job = enqueue_webhook_delivery(body)
            logger.info("Queued webhook delivery as job %s", job.id)
            return PlainTextResponse("EVENT_RECEIVED")
        except RedisError as exc:
            logger.error("Webhook queue unavailable, processing in-process: %s", exc)

    runner.submit(pipeline.process_delivery(body), name="webhook-delivery")
    return PlainTextResponse("EVENT_RECEIVED")

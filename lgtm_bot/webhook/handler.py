"""
Webhook Handler Module

This module defines the FastAPI endpoints for handling GitHub webhooks.
It implements the webhook endpoint with proper security, validation,
and background task processing.

Design Decisions:
- Return 200 OK immediately after validation (GitHub timeout handling)
- Offload plugin handling to background tasks
- Comprehensive logging for debugging
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status
from pydantic import ValidationError

from lgtm_bot.logging_config import get_logger
from lgtm_bot.webhook.processor import EventDispatcher, WebhookPayload, parse_webhook_payload
from lgtm_bot.webhook.security import (
    extract_delivery_id,
    validate_webhook_event,
    verify_webhook_signature,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/github", status_code=status.HTTP_200_OK)
async def github_webhook(
    request: Request,
    background_tasks: BackgroundTasks
) -> Dict[str, Any]:
    """
    GitHub webhook endpoint.

    Validates the webhook signature, parses the payload, and queues
    the delivery for the registered plugins.

    The endpoint returns immediately after validation to avoid
    GitHub's webhook timeout (10 seconds).

    Raises:
        HTTPException: On validation or security failures
    """
    delivery_id = extract_delivery_id(request)

    logger.info(
        "Received GitHub webhook",
        delivery_id=delivery_id,
        remote_addr=request.client.host if request.client else "unknown"
    )

    raw_body = await request.body()

    # Signature first, nothing else is trusted before it
    await verify_webhook_signature(request, raw_body)

    event_type = request.headers.get("X-GitHub-Event")

    if event_type == "ping":
        return {"status": "pong", "delivery_id": delivery_id}

    try:
        payload_dict = await request.json() if raw_body else {}
    except ValueError as e:
        logger.error("Failed to parse webhook payload", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    if not isinstance(payload_dict, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payload must be a JSON object"
        )

    action = payload_dict.get("action")
    if not validate_webhook_event(event_type, action):
        return {
            "status": "ignored",
            "reason": f"Event type '{event_type}' with action '{action}' not processed",
            "delivery_id": delivery_id
        }

    try:
        payload = parse_webhook_payload(event_type, payload_dict)
    except ValidationError as e:
        logger.error(
            "Invalid webhook payload",
            error=str(e),
            delivery_id=delivery_id
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid payload: {e}"
        )

    logger.info(
        "Queueing webhook for plugins",
        event_type=event_type,
        action=action,
        repo=payload.repository.full_name,
        sender=payload.sender.login,
        delivery_id=delivery_id
    )

    background_tasks.add_task(
        _dispatch_with_error_handling,
        request.app.state.dispatcher,
        payload,
        delivery_id
    )

    return {
        "status": "queued",
        "event": event_type,
        "delivery_id": delivery_id
    }


async def _dispatch_with_error_handling(
    dispatcher: EventDispatcher,
    payload: WebhookPayload,
    delivery_id: Optional[str]
) -> None:
    """Run the plugins for a delivery without letting errors escape the task."""
    try:
        failures = await dispatcher.dispatch(payload, delivery_id)
    except Exception as e:
        logger.error(
            "Webhook dispatch failed",
            delivery_id=delivery_id,
            error=str(e),
            error_type=type(e).__name__
        )
        return

    if failures:
        logger.warning("Webhook handled with plugin failures", delivery_id=delivery_id, failures=failures)
    else:
        logger.info("Webhook handled", delivery_id=delivery_id)


@router.get("/health")
async def webhook_health() -> Dict[str, str]:
    """Health check endpoint for the webhook service."""
    return {"status": "healthy", "service": "webhook"}

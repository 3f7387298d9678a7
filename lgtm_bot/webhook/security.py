"""
Webhook Security Module

This module handles secure verification of GitHub webhook payloads.
It implements HMAC signature verification to ensure requests
are genuinely from GitHub, and decides which events are handled.

Design Decisions:
- Use constant-time comparison to prevent timing attacks
- Verify signature before any payload processing
- Support both SHA-1 and SHA-256 signatures (SHA-256 preferred)
"""

import hashlib
import hmac
from typing import Dict, FrozenSet, Optional

from fastapi import HTTPException, Request, status

from lgtm_bot.config import get_settings
from lgtm_bot.logging_config import get_logger

logger = get_logger(__name__)

# Event types and the actions of each that reach the plugins
HANDLED_EVENTS: Dict[str, FrozenSet[str]] = {
    "issue_comment": frozenset({"created", "edited", "deleted"}),
    "pull_request_review": frozenset({"submitted", "edited", "dismissed"}),
    "pull_request_review_comment": frozenset({"created", "edited", "deleted"}),
    "pull_request": frozenset({"opened", "edited"}),
}


def compute_signature(secret: str, body: bytes, algorithm: str = "sha256") -> str:
    """Compute the signature header value GitHub would send for a body."""
    hash_func = hashlib.sha256 if algorithm == "sha256" else hashlib.sha1
    digest = hmac.new(secret.encode(), body, hash_func).hexdigest()
    return f"{algorithm}={digest}"


async def verify_webhook_signature(
    request: Request,
    raw_body: bytes
) -> bool:
    """
    Verify the GitHub webhook signature.

    GitHub sends a signature in the X-Hub-Signature-256 header.
    We must verify this matches the HMAC-SHA256 of the request body
    using our webhook secret.

    Args:
        request: FastAPI request object
        raw_body: Raw request body bytes

    Returns:
        True if signature is valid

    Raises:
        HTTPException: If signature is missing or invalid
    """
    settings = get_settings()

    # Prefer SHA-256, fall back to SHA-1
    signature_header = request.headers.get("X-Hub-Signature-256")
    algorithm = "sha256"

    if not signature_header:
        signature_header = request.headers.get("X-Hub-Signature")
        algorithm = "sha1"

    if not signature_header:
        logger.warning(
            "Missing webhook signature header",
            remote_addr=request.client.host if request.client else "unknown"
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing webhook signature"
        )

    prefix, _, _ = signature_header.partition("=")
    if prefix != algorithm:
        logger.warning(
            "Invalid signature format",
            signature_header=signature_header[:50]
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature format"
        )

    expected = compute_signature(settings.github_webhook_secret, raw_body, algorithm)

    if not hmac.compare_digest(signature_header, expected):
        logger.warning(
            "Webhook signature mismatch",
            remote_addr=request.client.host if request.client else "unknown",
            algorithm=algorithm
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature"
        )

    logger.debug("Webhook signature verified successfully", algorithm=algorithm)
    return True


def validate_webhook_event(
    event_type: Optional[str],
    action: Optional[str]
) -> bool:
    """
    Decide whether a webhook event is handed to the plugins.

    Args:
        event_type: GitHub event type from X-GitHub-Event header
        action: Action from payload

    Returns:
        True if we should process this event

    Raises:
        HTTPException: If the event type header is missing
    """
    if not event_type:
        logger.debug("Missing event type header")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-GitHub-Event header"
        )

    actions = HANDLED_EVENTS.get(event_type)
    if actions is None:
        logger.debug("Ignoring unhandled event", event_type=event_type)
        return False

    if action not in actions:
        logger.debug("Ignoring event action", event_type=event_type, action=action)
        return False

    return True


def extract_delivery_id(request: Request) -> Optional[str]:
    """Extract the webhook delivery ID from headers."""
    return request.headers.get("X-GitHub-Delivery")

"""
Webhook Package

This package contains webhook handling components:
- handler: FastAPI route handlers
- security: Webhook signature verification and event filtering
- processor: payload normalization and plugin dispatch
"""

from lgtm_bot.webhook.handler import router

__all__ = ["router"]

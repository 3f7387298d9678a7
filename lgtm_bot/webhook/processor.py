"""
Event Processor Module

This module turns validated webhook payloads into the normalized events
plugins consume and runs every registered handler for them.

Design Decisions:
- Parse payloads into typed models before queueing (fail fast with a 400)
- One GitHub client per delivery, shared by all handlers
- A failing handler is logged and does not stop the others
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type, Union

from pydantic import BaseModel

from lgtm_bot.logging_config import get_logger
from lgtm_bot.models import (
    GenericCommentAction,
    GenericCommentEvent,
    IssueCommentWebhookPayload,
    PullRequestReviewCommentWebhookPayload,
    PullRequestReviewWebhookPayload,
    PullRequestWebhookPayload,
    ReviewEvent,
)
from lgtm_bot.plugins.registry import PluginClient, PluginGitHubClient, PluginRegistry
from lgtm_bot.services.github_client import get_github_client

logger = get_logger(__name__)

WebhookPayload = Union[
    IssueCommentWebhookPayload,
    PullRequestReviewWebhookPayload,
    PullRequestReviewCommentWebhookPayload,
    PullRequestWebhookPayload,
]

PAYLOAD_MODELS: Dict[str, Type[BaseModel]] = {
    "issue_comment": IssueCommentWebhookPayload,
    "pull_request_review": PullRequestReviewWebhookPayload,
    "pull_request_review_comment": PullRequestReviewCommentWebhookPayload,
    "pull_request": PullRequestWebhookPayload,
}

# Webhook actions mapped onto generic comment actions
_REVIEW_ACTIONS = {
    "submitted": GenericCommentAction.CREATED,
    "edited": GenericCommentAction.EDITED,
    "dismissed": GenericCommentAction.DELETED,
}
_PULL_REQUEST_ACTIONS = {
    "opened": GenericCommentAction.CREATED,
    "edited": GenericCommentAction.EDITED,
}

ClientFactory = Callable[[Optional[int]], PluginGitHubClient]


def parse_webhook_payload(event_type: str, payload: Dict[str, Any]) -> WebhookPayload:
    """
    Validate a raw payload against the model for its event type.

    Raises:
        KeyError: If the event type has no payload model
        pydantic.ValidationError: If the payload does not match the model
    """
    return PAYLOAD_MODELS[event_type].model_validate(payload)


@dataclass
class NormalizedEvents:
    installation_id: Optional[int] = None
    generic_comments: List[GenericCommentEvent] = field(default_factory=list)
    reviews: List[ReviewEvent] = field(default_factory=list)


def normalize_events(payload: WebhookPayload) -> NormalizedEvents:
    """Build the plugin-facing events described by one webhook payload."""
    installation_id = payload.installation.id if payload.installation else None
    events = NormalizedEvents(installation_id=installation_id)

    if isinstance(payload, IssueCommentWebhookPayload):
        issue = payload.issue
        events.generic_comments.append(GenericCommentEvent(
            action=GenericCommentAction(payload.action),
            is_pr=issue.is_pull_request,
            issue_state=issue.state,
            user=payload.comment.user,
            issue_author=issue.user,
            repo=payload.repository,
            number=issue.number,
            assignees=issue.assignees,
            body=payload.comment.body or "",
            html_url=payload.comment.html_url,
            installation_id=installation_id,
        ))

    elif isinstance(payload, PullRequestReviewWebhookPayload):
        pr = payload.pull_request
        events.generic_comments.append(GenericCommentEvent(
            action=_REVIEW_ACTIONS[payload.action],
            is_pr=True,
            issue_state=pr.state,
            user=payload.review.user,
            issue_author=pr.user,
            repo=payload.repository,
            number=pr.number,
            assignees=pr.assignees,
            body=payload.review.body or "",
            html_url=payload.review.html_url,
            installation_id=installation_id,
        ))
        events.reviews.append(ReviewEvent(
            action=payload.action,
            review=payload.review,
            pull_request=pr,
            repo=payload.repository,
            installation_id=installation_id,
        ))

    elif isinstance(payload, PullRequestReviewCommentWebhookPayload):
        pr = payload.pull_request
        events.generic_comments.append(GenericCommentEvent(
            action=GenericCommentAction(payload.action),
            is_pr=True,
            issue_state=pr.state,
            user=payload.comment.user,
            issue_author=pr.user,
            repo=payload.repository,
            number=pr.number,
            assignees=pr.assignees,
            body=payload.comment.body or "",
            html_url=payload.comment.html_url,
            installation_id=installation_id,
        ))

    elif isinstance(payload, PullRequestWebhookPayload):
        pr = payload.pull_request
        events.generic_comments.append(GenericCommentEvent(
            action=_PULL_REQUEST_ACTIONS[payload.action],
            is_pr=True,
            issue_state=pr.state,
            user=pr.user,
            issue_author=pr.user,
            repo=payload.repository,
            number=pr.number,
            assignees=pr.assignees,
            body=pr.body or "",
            html_url=pr.html_url,
            installation_id=installation_id,
        ))

    return events


class EventDispatcher:
    """
    Runs registered plugin handlers for webhook deliveries.

    Usage:
        dispatcher = EventDispatcher(registry)
        await dispatcher.dispatch(payload, delivery_id)
    """

    def __init__(
        self,
        registry: PluginRegistry,
        client_factory: ClientFactory = get_github_client
    ):
        self.registry = registry
        self.client_factory = client_factory

    async def dispatch(self, payload: WebhookPayload, delivery_id: Optional[str]) -> int:
        """
        Handle one delivery.

        Returns:
            Number of handlers that raised
        """
        events = normalize_events(payload)
        client = self.client_factory(events.installation_id)
        failures = 0

        for event in events.generic_comments:
            for name, handler in self.registry.generic_comment_handlers.items():
                if not await self._run(name, "generic_comment", handler, client, event, delivery_id):
                    failures += 1

        for event in events.reviews:
            for name, handler in self.registry.review_event_handlers.items():
                if not await self._run(name, "review", handler, client, event, delivery_id):
                    failures += 1

        return failures

    async def _run(
        self,
        name: str,
        kind: str,
        handler: Callable,
        client: PluginGitHubClient,
        event: Union[GenericCommentEvent, ReviewEvent],
        delivery_id: Optional[str]
    ) -> bool:
        plugin_logger = logger.bind(plugin=name, event_kind=kind, delivery_id=delivery_id)
        try:
            await handler(PluginClient(github_client=client, logger=plugin_logger), event)
        except Exception as e:
            plugin_logger.error(
                "Plugin failed to handle event",
                repo=event.repo.full_name,
                error=str(e),
                error_type=type(e).__name__
            )
            return False
        return True

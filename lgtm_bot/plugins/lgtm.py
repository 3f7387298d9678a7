"""
LGTM Plugin Module

Manages the 'lgtm' label on pull requests.

- "/lgtm" (or "/lgtm no-issue") on its own line, or an approving review,
  adds the label
- "/lgtm cancel" on its own line, or a review requesting changes,
  removes it
- Authors cannot LGTM their own pull request, but may cancel
- Only assignees may change the label; commenters are assigned first and
  told why when that fails
"""

import re
from dataclasses import dataclass
from typing import List, Optional

import structlog

from lgtm_bot.config import Settings
from lgtm_bot.models import (
    GenericCommentAction,
    GenericCommentEvent,
    GitHubRepository,
    GitHubUser,
    PluginCommand,
    PluginHelp,
    ReviewEvent,
    ReviewState,
)
from lgtm_bot.plugins.registry import PluginClient, PluginGitHubClient, PluginRegistry
from lgtm_bot.plugins.responses import format_response_raw
from lgtm_bot.services.errors import GitHubError

PLUGIN_NAME = "lgtm"

LGTM_PATTERN = r"(?mi)^/lgtm(?: no-issue)?\s*$"
LGTM_CANCEL_PATTERN = r"(?mi)^/lgtm cancel\s*$"


@dataclass(frozen=True)
class LGTMConfig:
    """Label name and command patterns, built once at startup."""
    label: str = "lgtm"
    lgtm_re: re.Pattern = re.compile(LGTM_PATTERN)
    cancel_re: re.Pattern = re.compile(LGTM_CANCEL_PATTERN)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LGTMConfig":
        return cls(label=settings.lgtm_label)

    def comment_intent(self, body: str) -> Optional[bool]:
        """
        Work out what a comment asks for.

        Returns:
            True to add the label, False to remove it, None when the
            comment is not an lgtm command
        """
        if self.lgtm_re.search(body):
            return True
        if self.cancel_re.search(body):
            return False
        return None


def review_intent(state: str) -> Optional[bool]:
    """Map a review state to the desired label state, None to ignore."""
    if state == ReviewState.APPROVED:
        return True
    if state == ReviewState.CHANGES_REQUESTED:
        return False
    return None


@dataclass(frozen=True)
class LGTMRequest:
    """Everything the handler needs from either event kind."""
    author: str
    issue_author: str
    repo: GitHubRepository
    assignees: List[GitHubUser]
    number: int
    body: str
    html_url: str

    @property
    def org(self) -> str:
        return self.repo.owner.login


class LGTMPlugin:
    """Handlers for comment and review events toggling the lgtm label."""

    def __init__(self, config: LGTMConfig):
        self.config = config

    def help_provider(self, enabled_repos: List[str]) -> PluginHelp:
        # Not configurable per repository, so enabled_repos is unused
        plugin_help = PluginHelp(
            description=(
                f"The lgtm plugin manages the application and removal of the "
                f"'{self.config.label}' (Looks Good To Me) label which is "
                f"typically used to gate merging."
            )
        )
        plugin_help.add_command(PluginCommand(
            usage="/lgtm [cancel]",
            description=(
                f"Adds or removes the '{self.config.label}' label which is "
                f"typically used to gate merging."
            ),
            featured=True,
            who_can_use=(
                "Members of the organization that owns the repository. "
                "'/lgtm cancel' can be used additionally by the PR author."
            ),
            examples=["/lgtm", "/lgtm cancel"],
        ))
        return plugin_help

    async def handle_generic_comment(self, pc: PluginClient, event: GenericCommentEvent) -> None:
        # Only consider open PRs and new comments.
        if not event.is_pr or event.issue_state != "open":
            return
        if event.action != GenericCommentAction.CREATED:
            return

        want_lgtm = self.config.comment_intent(event.body)
        if want_lgtm is None:
            return

        await self._handle(pc, want_lgtm, LGTMRequest(
            author=event.user.login,
            issue_author=event.issue_author.login,
            repo=event.repo,
            assignees=event.assignees,
            number=event.number,
            body=event.body,
            html_url=event.html_url,
        ))

    async def handle_review(self, pc: PluginClient, event: ReviewEvent) -> None:
        want_lgtm = review_intent(event.review.state)
        if want_lgtm is None:
            return

        await self._handle(pc, want_lgtm, LGTMRequest(
            author=event.review.user.login,
            issue_author=event.pull_request.user.login,
            repo=event.repo,
            assignees=event.pull_request.assignees,
            number=event.pull_request.number,
            body=event.review.body or "",
            html_url=event.review.html_url,
        ))

    async def _handle(self, pc: PluginClient, want_lgtm: bool, req: LGTMRequest) -> None:
        gc = pc.github_client
        log = pc.logger.bind(repo=f"{req.org}/{req.repo.name}", number=req.number, author=req.author)
        org = req.org
        repo_name = req.repo.name

        if want_lgtm and req.author == req.issue_author:
            resp = "you cannot LGTM your own PR."
            log.info("Commenting", response=resp)
            await gc.create_comment(
                org, repo_name, req.number,
                format_response_raw(req.body, req.html_url, req.author, resp)
            )
            return

        if not any(assignee.login == req.author for assignee in req.assignees):
            log.info("Assigning reviewer")
            try:
                await gc.assign_issue(org, repo_name, req.number, [req.author])
            except GitHubError as assign_error:
                msg = await self._assignment_failure_reason(gc, log, org, req.author, assign_error)
                resp = "changing LGTM is restricted to assignees, and " + msg + "."
                log.info("Replying to assignment failure", response=resp)
                await gc.create_comment(
                    org, repo_name, req.number,
                    format_response_raw(req.body, req.html_url, req.author, resp)
                )
                return

        has_lgtm = False
        try:
            labels = await gc.get_issue_labels(org, repo_name, req.number)
        except GitHubError as e:
            # Continue as if the label were absent
            log.error("Failed to get the labels", error=str(e))
        else:
            has_lgtm = any(label.name == self.config.label for label in labels)

        if has_lgtm and not want_lgtm:
            log.info("Removing LGTM label", label=self.config.label)
            await gc.remove_label(org, repo_name, req.number, self.config.label)
        elif not has_lgtm and want_lgtm:
            log.info("Adding LGTM label", label=self.config.label)
            await gc.add_label(org, repo_name, req.number, self.config.label)

    async def _assignment_failure_reason(
        self,
        gc: PluginGitHubClient,
        log: structlog.stdlib.BoundLogger,
        org: str,
        user: str,
        assign_error: Exception
    ) -> str:
        try:
            is_member = await gc.is_member(org, user)
        except GitHubError as e:
            log.error("Failed to check org membership", org=org, user=user, error=str(e))
            return "assigning you to the PR failed"

        if not is_member:
            return f"only {org} org members may be assigned issues"

        log.error("Failed to assign issue", error=str(assign_error))
        return "assigning you to the PR failed"


def register(registry: PluginRegistry, config: LGTMConfig) -> LGTMPlugin:
    """Register the lgtm plugin for comment and review events."""
    plugin = LGTMPlugin(config)
    registry.register_generic_comment_handler(PLUGIN_NAME, plugin.handle_generic_comment, plugin.help_provider)
    registry.register_review_event_handler(PLUGIN_NAME, plugin.handle_review, plugin.help_provider)
    return plugin

"""
Data Models Module

This module defines all Pydantic models used throughout the application.
Strong typing ensures data integrity and provides clear contracts between components.

Design Decisions:
- Use Pydantic models for all data transfer objects
- Webhook payload models only declare the fields the bot reads
- Plugins never see raw payloads, only the normalized event models
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================

class GenericCommentAction(str, Enum):
    """Normalized lifecycle actions of anything that carries a comment body."""
    CREATED = "created"
    EDITED = "edited"
    DELETED = "deleted"


class ReviewState(str, Enum):
    """Review states as delivered in pull_request_review webhooks."""
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    COMMENTED = "commented"
    DISMISSED = "dismissed"
    PENDING = "pending"


# Alternate spellings seen for review states
_REVIEW_STATE_ALIASES = {
    "approve": ReviewState.APPROVED.value,
    "request_changes": ReviewState.CHANGES_REQUESTED.value,
    "comment": ReviewState.COMMENTED.value,
}


# =============================================================================
# GitHub Models
# =============================================================================

class GitHubUser(BaseModel):
    """GitHub user information."""
    login: str
    id: int = 0
    type: str = "User"


class GitHubLabel(BaseModel):
    """A label attached to an issue or pull request."""
    name: str
    color: str = ""
    description: Optional[str] = None


class GitHubRepository(BaseModel):
    """GitHub repository information."""
    id: int
    name: str
    full_name: str
    private: bool = False
    owner: GitHubUser
    html_url: str = ""


class GitHubIssue(BaseModel):
    """Issue information from an issue_comment webhook."""
    number: int
    state: str
    title: str = ""
    body: Optional[str] = None
    user: GitHubUser
    assignees: List[GitHubUser] = []
    labels: List[GitHubLabel] = []
    html_url: str = ""
    pull_request: Optional[Dict[str, Any]] = None

    @property
    def is_pull_request(self) -> bool:
        """GitHub marks issues that are pull requests with a pull_request key."""
        return self.pull_request is not None


class GitHubComment(BaseModel):
    """An issue comment or a pull request review comment."""
    id: int
    body: Optional[str] = None
    user: GitHubUser
    html_url: str = ""


class GitHubPullRequest(BaseModel):
    """Pull request information from webhook."""
    id: int
    number: int
    state: str
    title: str = ""
    body: Optional[str] = None
    user: GitHubUser
    assignees: List[GitHubUser] = []
    html_url: str = ""
    draft: bool = False
    merged: bool = False


class GitHubReview(BaseModel):
    """A formal review submitted on a pull request."""
    id: int
    body: Optional[str] = None
    user: GitHubUser
    state: str
    html_url: str = ""

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.lower()
            return _REVIEW_STATE_ALIASES.get(v, v)
        return v


class GitHubInstallation(BaseModel):
    """GitHub App installation information."""
    id: int
    account: Optional[GitHubUser] = None


# =============================================================================
# Webhook Payloads
# =============================================================================

class IssueCommentWebhookPayload(BaseModel):
    """issue_comment webhook payload."""
    action: str
    issue: GitHubIssue
    comment: GitHubComment
    repository: GitHubRepository
    sender: GitHubUser
    installation: Optional[GitHubInstallation] = None


class PullRequestReviewWebhookPayload(BaseModel):
    """pull_request_review webhook payload."""
    action: str
    review: GitHubReview
    pull_request: GitHubPullRequest
    repository: GitHubRepository
    sender: GitHubUser
    installation: Optional[GitHubInstallation] = None


class PullRequestReviewCommentWebhookPayload(BaseModel):
    """pull_request_review_comment webhook payload."""
    action: str
    comment: GitHubComment
    pull_request: GitHubPullRequest
    repository: GitHubRepository
    sender: GitHubUser
    installation: Optional[GitHubInstallation] = None


class PullRequestWebhookPayload(BaseModel):
    """pull_request webhook payload."""
    action: str
    number: int
    pull_request: GitHubPullRequest
    repository: GitHubRepository
    sender: GitHubUser
    installation: Optional[GitHubInstallation] = None


# =============================================================================
# Normalized Events
# =============================================================================

class GenericCommentEvent(BaseModel):
    """
    A comment-like event, independent of where the text came from.

    Issue comments, review comments, review bodies and pull request
    descriptions are all normalized into this shape so that command
    plugins only need a single handler.
    """
    action: GenericCommentAction
    is_pr: bool
    issue_state: str
    user: GitHubUser
    issue_author: GitHubUser
    repo: GitHubRepository
    number: int
    assignees: List[GitHubUser] = []
    body: str = ""
    html_url: str = ""
    installation_id: Optional[int] = None


class ReviewEvent(BaseModel):
    """A pull_request_review webhook reduced to what plugins use."""
    action: str
    review: GitHubReview
    pull_request: GitHubPullRequest
    repo: GitHubRepository
    installation_id: Optional[int] = None


# =============================================================================
# Plugin Help
# =============================================================================

class PluginCommand(BaseModel):
    """A command a plugin reacts to, as documented to users."""
    usage: str
    description: str
    featured: bool = False
    who_can_use: str = ""
    examples: List[str] = []


class PluginHelp(BaseModel):
    """User facing description of a plugin."""
    description: str
    commands: List[PluginCommand] = Field(default_factory=list)

    def add_command(self, command: PluginCommand) -> None:
        self.commands.append(command)

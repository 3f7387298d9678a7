"""Exceptions raised by the GitHub service layer."""

from typing import List, Optional


class GitHubError(Exception):
    """Base class for every failure talking to GitHub."""


class GitHubAuthError(GitHubError):
    """Authentication with GitHub failed."""


class GitHubAPIError(GitHubError):
    """A GitHub API request failed or returned an unexpected status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class GitHubRateLimitError(GitHubAPIError):
    """Exception raised when GitHub rate limit is exceeded."""


class GitHubMissingUsersError(GitHubAPIError):
    """
    Some users could not be assigned.

    GitHub answers an assignment request successfully even when it drops
    users that cannot be assigned, so this is detected from the response.
    """

    def __init__(self, users: List[str], action: str = "assign"):
        super().__init__(f"could not {action} the following user(s): {', '.join(users)}")
        self.users = users
        self.action = action

"""
Services Package

This package contains the GitHub service modules:
- errors: exception hierarchy for GitHub failures
- github_auth: token resolution and GitHub App authentication
- github_client: GitHub API client
"""

from lgtm_bot.services.errors import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubError,
    GitHubMissingUsersError,
    GitHubRateLimitError,
)
from lgtm_bot.services.github_auth import get_github_auth, GitHubAppAuth
from lgtm_bot.services.github_client import get_github_client, GitHubClient

__all__ = [
    "GitHubError",
    "GitHubAPIError",
    "GitHubAuthError",
    "GitHubMissingUsersError",
    "GitHubRateLimitError",
    "get_github_auth",
    "GitHubAppAuth",
    "get_github_client",
    "GitHubClient",
]

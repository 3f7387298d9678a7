"""
GitHub API Client Module

This module provides the client plugins use to talk to the GitHub REST API.
It handles authentication, rate limiting, retries and the issue, label and
membership operations the bot needs.

Design Decisions:
- Use httpx for async HTTP requests
- Retry transport failures and rate limit exhaustion, never API errors
- Surface every failure as a GitHubError subclass
- Support pagination for large result sets
"""

import asyncio
import time
from typing import Any, Container, Dict, List, Optional
from urllib.parse import quote

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from lgtm_bot.config import Settings, get_settings
from lgtm_bot.logging_config import get_logger
from lgtm_bot.models import GitHubLabel
from lgtm_bot.services.errors import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubMissingUsersError,
    GitHubRateLimitError,
)
from lgtm_bot.services.github_auth import GitHubAppAuth, get_github_auth

logger = get_logger(__name__)

# Longest we are willing to wait for a rate limit window to reset
MAX_RATE_LIMIT_SLEEP = 300

# One limiter per installation, shared by every client acting for it
_rate_limiters: Dict[Optional[int], AsyncLimiter] = {}


def get_rate_limiter(installation_id: Optional[int], max_rate: int) -> AsyncLimiter:
    """Get the process-wide limiter for an installation's hourly budget."""
    limiter = _rate_limiters.get(installation_id)
    if limiter is None:
        limiter = AsyncLimiter(max_rate=max_rate, time_period=3600)
        _rate_limiters[installation_id] = limiter
    return limiter


class GitHubClient:
    """
    Async GitHub API client with authentication and rate limiting.

    Usage:
        client = GitHubClient(installation_id=123)
        labels = await client.get_issue_labels("owner", "repo", 42)
    """

    def __init__(
        self,
        installation_id: Optional[int],
        settings: Optional[Settings] = None,
        auth: Optional[GitHubAppAuth] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the GitHub client.

        Args:
            installation_id: GitHub App installation the requests act for
            settings: Settings to use instead of the process-wide ones
            auth: Token provider, defaults to the shared GitHubAppAuth
            transport: Custom httpx transport, mainly for tests
        """
        self.installation_id = installation_id
        self.settings = settings or get_settings()
        self.auth = auth or get_github_auth()
        self._transport = transport
        self._rate_limiter = get_rate_limiter(installation_id, self.settings.github_rate_limit)

    async def _get_headers(self) -> dict:
        token = await self.auth.get_token(self.installation_id)
        return {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _handle_rate_limit(self, response: httpx.Response) -> None:
        """
        Inspect rate limit headers.

        Warns when the remaining budget is low. When a request was rejected
        because the budget is exhausted, waits for the reset and raises
        GitHubRateLimitError so the request is retried.
        """
        remaining = response.headers.get("x-ratelimit-remaining")
        reset_time = response.headers.get("x-ratelimit-reset")
        if remaining is None:
            return

        remaining_int = int(remaining)
        if remaining_int < 100:
            logger.warning(
                "GitHub API rate limit running low",
                remaining=remaining_int,
                reset_at=reset_time
            )

        if remaining_int == 0 and response.status_code in (403, 429):
            sleep_time = 5
            if reset_time:
                sleep_time += max(0, int(reset_time) - int(time.time()))
            sleep_time = min(sleep_time, MAX_RATE_LIMIT_SLEEP)
            logger.warning(
                "Rate limit exceeded, waiting for reset",
                sleep_seconds=sleep_time
            )
            await asyncio.sleep(sleep_time)
            raise GitHubRateLimitError("Rate limit exceeded", status_code=response.status_code)

    async def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        async with self._rate_limiter:
            headers = await self._get_headers()
            async with httpx.AsyncClient(
                base_url=self.settings.github_api_url,
                timeout=self.settings.github_request_timeout,
                transport=self._transport
            ) as client:
                response = await client.request(method, endpoint, headers=headers, **kwargs)
            await self._handle_rate_limit(response)
            return response

    async def _request(
        self,
        method: str,
        endpoint: str,
        expected_statuses: Container[int] = (),
        **kwargs: Any
    ) -> httpx.Response:
        """
        Make an authenticated request to the GitHub API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (without base URL)
            expected_statuses: Error statuses the caller handles itself
            **kwargs: Additional arguments to pass to httpx

        Returns:
            httpx.Response object

        Raises:
            GitHubAuthError: If GitHub rejects the credentials
            GitHubAPIError: If the request fails
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.settings.max_retries),
                wait=wait_exponential(multiplier=1, min=2, max=30),
                retry=retry_if_exception_type((httpx.TransportError, GitHubRateLimitError)),
                reraise=True
            ):
                with attempt:
                    response = await self._send(method, endpoint, **kwargs)
        except httpx.TransportError as e:
            logger.error("GitHub request failed", method=method, endpoint=endpoint, error=str(e))
            raise GitHubAPIError(f"GitHub request failed: {e}") from e

        if response.status_code in expected_statuses:
            return response

        if response.status_code == 401:
            self.auth.invalidate_token(self.installation_id)
            raise GitHubAuthError("Authentication failed, token invalidated")

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "GitHub API error",
                method=method,
                status_code=response.status_code,
                endpoint=endpoint,
                error=error_body[:500]
            )
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body
            )

        return response

    async def is_member(self, org: str, user: str) -> bool:
        """
        Check whether a user belongs to an organization.

        Raises:
            GitHubAPIError: If GitHub answers with anything but yes or no
        """
        response = await self._request(
            "GET",
            f"/orgs/{org}/members/{user}",
            expected_statuses=(404,)
        )
        if response.status_code == 204:
            return True
        if response.status_code == 404:
            return False
        raise GitHubAPIError(
            f"Unexpected status checking membership: {response.status_code}",
            status_code=response.status_code,
            response_body=response.text
        )

    async def get_issue_labels(self, org: str, repo: str, number: int) -> List[GitHubLabel]:
        """Fetch every label on an issue or pull request."""
        labels: List[GitHubLabel] = []
        page = 1
        per_page = 100

        while True:
            response = await self._request(
                "GET",
                f"/repos/{org}/{repo}/issues/{number}/labels",
                params={"page": page, "per_page": per_page}
            )
            data = response.json()
            labels.extend(GitHubLabel(**item) for item in data)
            if len(data) < per_page:
                break
            page += 1

        return labels

    async def add_label(self, org: str, repo: str, number: int, label: str) -> None:
        await self._request(
            "POST",
            f"/repos/{org}/{repo}/issues/{number}/labels",
            json={"labels": [label]}
        )
        logger.info("Added label", repo=f"{org}/{repo}", number=number, label=label)

    async def remove_label(self, org: str, repo: str, number: int, label: str) -> None:
        await self._request(
            "DELETE",
            f"/repos/{org}/{repo}/issues/{number}/labels/{quote(label, safe='')}"
        )
        logger.info("Removed label", repo=f"{org}/{repo}", number=number, label=label)

    async def assign_issue(self, org: str, repo: str, number: int, logins: List[str]) -> None:
        """
        Add assignees to an issue or pull request.

        Raises:
            GitHubMissingUsersError: If GitHub silently dropped some logins
            GitHubAPIError: If the request fails
        """
        response = await self._request(
            "POST",
            f"/repos/{org}/{repo}/issues/{number}/assignees",
            json={"assignees": logins}
        )
        assigned = {a["login"].lower() for a in response.json().get("assignees", [])}
        missing = [login for login in logins if login.lower() not in assigned]
        if missing:
            raise GitHubMissingUsersError(missing)

    async def create_comment(self, org: str, repo: str, number: int, body: str) -> None:
        if not self.settings.enable_github_comments:
            logger.info(
                "GitHub comments disabled, skipping comment",
                repo=f"{org}/{repo}",
                number=number
            )
            return
        await self._request(
            "POST",
            f"/repos/{org}/{repo}/issues/{number}/comments",
            json={"body": body}
        )


def get_github_client(installation_id: Optional[int]) -> GitHubClient:
    """Create a GitHub client for a specific installation."""
    return GitHubClient(installation_id)

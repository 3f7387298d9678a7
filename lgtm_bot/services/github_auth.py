"""
GitHub Authentication Service

This module resolves the access token used for GitHub API requests:
- A configured personal/bot token is used as-is
- Otherwise a GitHub App JWT is exchanged for an installation token
- Installation tokens are cached and refreshed before they expire
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import httpx
import jwt
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from lgtm_bot.config import Settings, get_settings
from lgtm_bot.logging_config import get_logger
from lgtm_bot.services.errors import GitHubAuthError

logger = get_logger(__name__)

# Refresh installation tokens this long before GitHub expires them
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)


@dataclass
class InstallationToken:
    """Installation access token with its expiry."""
    token: str
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at - TOKEN_REFRESH_MARGIN


class GitHubAppAuth:
    """
    Token provider for GitHub API requests.

    Usage:
        auth = GitHubAppAuth()
        token = await auth.get_token(installation_id)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._private_key: Optional[str] = None
        self._token_cache: Dict[int, InstallationToken] = {}

    @property
    def private_key(self) -> str:
        """Lazy load and cache the private key."""
        if self._private_key is None:
            self._private_key = self.settings.get_private_key()
            logger.debug("Loaded GitHub App private key")
        return self._private_key

    def generate_jwt(self) -> str:
        """
        Generate a JWT authenticating as the GitHub App itself.

        Raises:
            GitHubAuthError: If the App is not configured or signing fails
        """
        if not self.settings.github_app_id:
            raise GitHubAuthError("GITHUB_APP_ID is not configured")

        now = int(time.time())
        payload = {
            # Backdated to tolerate clock drift
            "iat": now - 60,
            # GitHub rejects anything over 10 minutes
            "exp": now + 9 * 60,
            "iss": self.settings.github_app_id,
        }

        try:
            return jwt.encode(payload, self.private_key, algorithm="RS256")
        except (ValueError, jwt.PyJWTError) as e:
            logger.error("Failed to generate JWT", error=str(e))
            raise GitHubAuthError(f"Failed to generate JWT: {e}") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True
    )
    async def _fetch_installation_token(self, installation_id: int) -> InstallationToken:
        url = f"{self.settings.github_api_url}/app/installations/{installation_id}/access_tokens"
        headers = {
            "Authorization": f"Bearer {self.generate_jwt()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

        async with httpx.AsyncClient(timeout=self.settings.github_request_timeout) as client:
            response = await client.post(url, headers=headers)

        if response.status_code >= 400:
            logger.error(
                "Failed to get installation token",
                installation_id=installation_id,
                status_code=response.status_code,
                error=response.text[:500]
            )
            raise GitHubAuthError(
                f"Failed to get installation token: {response.status_code}"
            )

        data = response.json()
        expires_at = datetime.fromisoformat(data["expires_at"].replace("Z", "+00:00"))
        logger.info(
            "Obtained installation access token",
            installation_id=installation_id,
            expires_at=expires_at.isoformat()
        )
        return InstallationToken(token=data["token"], expires_at=expires_at)

    async def get_token(self, installation_id: Optional[int]) -> str:
        """
        Get a token for requests made on behalf of an installation.

        Args:
            installation_id: Installation the webhook came from, if any

        Returns:
            Access token

        Raises:
            GitHubAuthError: If no token can be obtained
        """
        if self.settings.github_token:
            return self.settings.github_token

        if installation_id is None:
            raise GitHubAuthError(
                "Webhook carries no installation and GITHUB_TOKEN is not set"
            )

        cached = self._token_cache.get(installation_id)
        if cached and not cached.is_expired:
            return cached.token

        logger.debug(
            "Fetching new installation token",
            installation_id=installation_id,
            reason="expired" if cached else "not_cached"
        )
        try:
            new_token = await self._fetch_installation_token(installation_id)
        except httpx.TransportError as e:
            raise GitHubAuthError(f"Failed to reach GitHub: {e}") from e
        self._token_cache[installation_id] = new_token
        return new_token.token

    def invalidate_token(self, installation_id: Optional[int]) -> None:
        """Drop a cached installation token after GitHub rejected it."""
        if installation_id is not None and self._token_cache.pop(installation_id, None):
            logger.info("Invalidated cached token", installation_id=installation_id)


_auth_instance: Optional[GitHubAppAuth] = None


def get_github_auth() -> GitHubAppAuth:
    """Get the process-wide GitHubAppAuth instance."""
    global _auth_instance
    if _auth_instance is None:
        _auth_instance = GitHubAppAuth()
    return _auth_instance

"""
Configuration Management Module

This module handles all application configuration using Pydantic Settings.
Configuration is loaded from environment variables with strong typing and validation.

Design Decisions:
- Use Pydantic Settings for automatic environment variable loading
- Provide sensible defaults for optional settings
- Validate configuration at startup (fail-fast approach)
- Support a plain token as well as GitHub App credentials
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values are loaded from environment variables only,
    never hardcoded or logged.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # =========================================================================
    # GitHub Configuration
    # =========================================================================
    github_app_id: Optional[str] = Field(
        default=None,
        description="GitHub App ID from app settings"
    )

    github_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to GitHub App private key .pem file"
    )

    github_private_key: Optional[str] = Field(
        default=None,
        description="GitHub App private key content (alternative to path)"
    )

    github_token: Optional[str] = Field(
        default=None,
        description="Personal or bot access token (used instead of App auth)"
    )

    github_webhook_secret: str = Field(
        description="Webhook secret for signature verification"
    )

    github_api_url: str = Field(
        default="https://api.github.com",
        description="Base URL of the GitHub REST API"
    )

    github_rate_limit: int = Field(
        default=5000,
        ge=100,
        description="GitHub API rate limit per hour"
    )

    github_request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for a single GitHub API request"
    )

    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts for a GitHub API request"
    )

    # =========================================================================
    # LGTM Plugin
    # =========================================================================
    lgtm_label: str = Field(
        default="lgtm",
        min_length=1,
        description="Name of the label toggled by /lgtm"
    )

    enable_github_comments: bool = Field(
        default=True,
        description="Enable posting bot responses to GitHub"
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind the server"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port to bind the server"
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_json_format: bool = Field(
        default=True,
        description="Enable JSON logging format"
    )

    log_requests: bool = Field(
        default=False,
        description="Enable request/response logging"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("github_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def get_private_key(self) -> str:
        """
        Get the GitHub App private key content.

        Supports two modes:
        1. Direct content via GITHUB_PRIVATE_KEY env var
        2. File path via GITHUB_PRIVATE_KEY_PATH env var

        Returns:
            Private key content as string

        Raises:
            ValueError: If neither option is configured or file doesn't exist
        """
        if self.github_private_key:
            # Handle newline escaping in env vars
            return self.github_private_key.replace("\\n", "\n")

        if self.github_private_key_path:
            key_path = Path(self.github_private_key_path)
            if not key_path.exists():
                raise ValueError(f"Private key file not found: {key_path}")
            return key_path.read_text()

        raise ValueError(
            "GitHub private key not configured. "
            "Set either GITHUB_PRIVATE_KEY or GITHUB_PRIVATE_KEY_PATH"
        )

    def validate_credentials(self) -> None:
        """
        Check that some form of GitHub credentials is configured.

        Raises:
            ValueError: If neither a token nor complete App credentials are set
        """
        if self.github_token:
            return
        if not self.github_app_id:
            raise ValueError(
                "GitHub credentials not configured. "
                "Set GITHUB_TOKEN or GITHUB_APP_ID with a private key"
            )
        self.get_private_key()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings instance
    """
    return Settings()

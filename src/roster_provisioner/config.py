"""Configuration for the roster provisioner.

Configuration is loaded from:
- environment variables prefixed with ``PROVISIONER_``
- and a local `.env` file (if present)

Command-line options override both. The access token is not part
of the settings: it is read from the token file named on the command line.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URLS: dict[str, str] = {
    "gitlab": "https://git.uwaterloo.ca",
    "github": "https://api.github.com",
}


class ProvisionerSettings(BaseSettings):
    """Settings for a provisioning run.

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `ProvisionerSettings(_env_file=path_to_env)`.
    """

    provider: Literal["gitlab", "github"] = Field(
        default="gitlab",
        description="Hosting backend to provision on",
    )
    base_url: str | None = Field(
        default=None,
        description=(
            "GitLab server root, or the GitHub API URL when provider is 'github'. "
            "Defaults to the provider's usual host."
        ),
    )
    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )

    workers: int = Field(
        default=1,
        ge=1,
        le=8,
        description="Number of roster entries provisioned concurrently (1 = sequential)",
    )
    default_branch: str = Field(
        default="main",
        description="Branch to protect when the provider does not report a default branch",
    )
    blank_lines: Literal["skip", "fail"] = Field(
        default="skip",
        description=(
            "Roster policy for blank lines. 'skip' ignores them but still counts them "
            "for line numbering; 'fail' rejects the roster."
        ),
    )

    readiness_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Upper bound on waiting for the provider to finish copying a template",
    )
    poll_initial_seconds: float = Field(
        default=1.0,
        gt=0,
        description="First delay between readiness probes",
    )
    poll_max_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Cap for a single backoff delay",
    )
    backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the delay after each attempt",
    )
    config_retry_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts for each member-add and branch-protection call",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout for REST calls",
    )

    model_config = SettingsConfigDict(
        env_prefix="PROVISIONER_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        return value or None

    @field_validator("default_branch")
    @classmethod
    def _require_branch(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("default_branch must not be empty")
        return value.strip()

    @model_validator(mode="after")
    def _check_poll_bounds(self) -> ProvisionerSettings:
        if self.poll_initial_seconds > self.poll_max_seconds:
            raise ValueError("poll_initial_seconds must not exceed poll_max_seconds")
        return self

    @property
    def resolved_base_url(self) -> str:
        """The configured base URL, or the provider's default host."""

        return self.base_url or DEFAULT_BASE_URLS[self.provider]

"""Factory for creating hosting backends."""

import logging

from roster_provisioner.config import ProvisionerSettings
from roster_provisioner.hosting.client import HostingClient
from roster_provisioner.hosting.github import GitHubClient
from roster_provisioner.hosting.gitlab import GitLabClient

logger = logging.getLogger(__name__)


def create_hosting_client(settings: ProvisionerSettings, token: str) -> HostingClient:
    """Create a hosting backend based on configuration.

    Args:
        settings: Run settings selecting the provider and its URL.
        token: Access token read from the token file.

    Returns:
        Configured hosting client.

    Raises:
        ValueError: If the provider is not supported.
    """
    logger.info("Creating hosting client", extra={"provider": settings.provider})

    if settings.provider == "gitlab":
        return GitLabClient(
            token=token,
            base_url=settings.resolved_base_url,
            timeout=settings.http_timeout_seconds,
        )
    elif settings.provider == "github":
        return GitHubClient(token=token, base_url=settings.resolved_base_url)
    else:
        raise ValueError(f"Unsupported hosting provider: {settings.provider}")

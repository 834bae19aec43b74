"""Hosting backends."""

from roster_provisioner.hosting.client import HostingClient, RepoHandle
from roster_provisioner.hosting.factory import create_hosting_client

__all__ = [
    "HostingClient",
    "RepoHandle",
    "create_hosting_client",
]

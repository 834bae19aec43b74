"""Roster Provisioner.

Bulk-creates course repositories from a template:
- one repository per roster line (student or group)
- roster members added with developer access
- default branch protected against force pushes
"""

__version__ = "0.1.0"

from roster_provisioner.config import ProvisionerSettings

__all__ = ["__version__", "ProvisionerSettings"]

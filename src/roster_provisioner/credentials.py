"""Access token loading."""

from __future__ import annotations

import logging
from pathlib import Path

from roster_provisioner.errors import CredentialError

logger = logging.getLogger(__name__)


def read_token_file(path: Path) -> str:
    """Read the hosting access token from ``path``.

    The file is read once and treated as an opaque credential. Surrounding
    whitespace, including the trailing newline most editors add, is removed;
    the token itself must not contain whitespace.

    Raises:
        CredentialError: If the file is unreadable, empty or malformed.
    """

    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialError(f"Unable to read token from file {path}: {e}") from e

    token = raw.strip()
    if not token:
        raise CredentialError(f"Token file {path} is empty")
    if any(ch.isspace() for ch in token):
        raise CredentialError(f"Token file {path} must contain a single token")

    logger.debug("Loaded access token", extra={"path": str(path), "length": len(token)})
    return token

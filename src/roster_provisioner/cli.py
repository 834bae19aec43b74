"""Module entrypoint alias; the CLI is implemented in `roster_provisioner.main`."""

from __future__ import annotations

from roster_provisioner.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())

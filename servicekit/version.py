"""Build version reported by the health check."""
from __future__ import annotations

import os
from importlib.metadata import PackageNotFoundError, version as package_version

DISTRIBUTION = "service-toolkit"


def version() -> str:
    """Return ``SERVICE_VERSION`` if set, else the installed distribution's version.

    A ``SERVICE_COMMIT`` value, when present, is appended so deployments built
    from the same release can be told apart.
    """

    release = os.getenv("SERVICE_VERSION")
    if not release:
        try:
            release = package_version(DISTRIBUTION)
        except PackageNotFoundError:
            release = "unknown"
    commit = os.getenv("SERVICE_COMMIT")
    return f"{release}-{commit}" if commit else release

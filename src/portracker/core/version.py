"""Version module for reading the application version."""

import os
from importlib.metadata import PackageNotFoundError, version

PACKAGE_NAME = "portracker"


def get_version() -> str:
    """Get the application version.

    Prefers the APP_VERSION environment variable (set by container builds),
    then the installed package metadata, then 'unknown'.

    Returns:
        str: The version string, or 'unknown' if not found.
    """
    env_version = os.environ.get("APP_VERSION", "").strip()
    if env_version:
        return env_version

    try:
        return version(PACKAGE_NAME)
    except PackageNotFoundError:
        return "unknown"

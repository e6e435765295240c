"""Core application components package."""

from .config import settings
from .database import get_db
from .version import get_version

__all__ = [
    "settings",
    "get_db",
    "get_version",
]

"""Logging setup for the backend process."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def normalize_log_level(level_name: str) -> int:
    """Map a configured level name to a logging level, defaulting to INFO."""
    name = level_name.strip().lower()
    if name == "debug":
        return logging.DEBUG
    if name in {"warning", "warn"}:
        return logging.WARNING
    if name in {"error", "critical"}:
        return logging.ERROR
    return logging.INFO


def configure_logging(level_name: str = "info", debug: bool = False) -> None:
    """Configure the root logger once at startup."""
    level = logging.DEBUG if debug else normalize_log_level(level_name)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("portracker").setLevel(level)
    # httpx logs every probe request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

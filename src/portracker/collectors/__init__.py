"""Port collectors."""

from portracker.collectors.base import BaseCollector, PortObservation
from portracker.collectors.docker import DockerCollector
from portracker.collectors.system import SystemCollector

COLLECTORS: dict[str, type[BaseCollector]] = {
    "docker": DockerCollector,
    "system": SystemCollector,
}


def create_collector(kind: str, debug: bool = False) -> BaseCollector:
    """Instantiate a collector by platform name."""
    try:
        collector_class = COLLECTORS[kind.lower()]
    except KeyError:
        raise ValueError(f"Unknown collector type: {kind}") from None
    return collector_class(debug=debug)


__all__ = [
    "BaseCollector",
    "COLLECTORS",
    "DockerCollector",
    "PortObservation",
    "SystemCollector",
    "create_collector",
]

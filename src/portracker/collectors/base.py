"""Collector contract and the raw port observation record it produces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PortObservation:
    """One open port as reported by a collector.

    ``internal`` marks a port exposed only inside a container network
    namespace, with no host binding.
    """

    host_ip: str | None
    host_port: int | None
    protocol: str = "tcp"
    owner: str = ""
    pid: int | None = None
    container_id: str | None = None
    internal: bool = False
    source: str | None = None  # 'docker' | 'system'
    target: str | None = None  # container side of a mapping, e.g. "80/tcp"

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "host_ip": self.host_ip,
            "host_port": self.host_port,
            "protocol": self.protocol,
            "owner": self.owner,
            "pid": self.pid,
            "container_id": self.container_id,
            "internal": self.internal,
            "source": self.source,
            "target": self.target,
        }


class BaseCollector(ABC):
    """Platform-specific source of open port observations.

    The rest of the system treats every implementation identically.
    """

    platform: str = "unknown"

    def __init__(self, debug: bool = False) -> None:
        self.debug = debug

    @abstractmethod
    async def get_ports(self) -> list[PortObservation]:
        """Return the open ports currently visible to this collector."""

    async def get_apps(self) -> list[dict[str, Any]]:
        """Return the applications (containers, processes) owning ports."""
        return []

    async def get_vms(self) -> list[dict[str, Any]]:
        return []

    async def collect_all(self) -> dict[str, Any]:
        """Collect everything this platform knows in one call."""
        ports = await self.get_ports()
        apps = await self.get_apps()
        vms = await self.get_vms()
        return {
            "ports": ports,
            "apps": apps,
            "vms": vms,
            "platform": self.platform,
        }

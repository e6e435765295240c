"""Ping orchestration: classify a port, probe it and report its status."""

import logging
import sys
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import httpx

from portracker.core.config import settings
from portracker.services.peers import fetch_from_peer
from portracker.services.reachability import ReachabilityProbe
from portracker.services.service_classifier import (
    ServiceDescriptor,
    ServiceType,
    detect_service_type,
)
from portracker.services.service_status import determine_service_status

logger = logging.getLogger(__name__)

# Addresses that must be translated into something reachable from here
LOCAL_BIND_ADDRESSES = frozenset({"0.0.0.0", "127.0.0.1", "::", "::1", "[::]", "[::1]"})

DEFAULT_DOCKER_HOST_IP = "172.17.0.1"
DOCKER_DESKTOP_HOST = "host.docker.internal"

PING_LOG_BURST = 5
PING_SUMMARY_INTERVAL_SECONDS = 30.0

HealthLookup = Callable[[str], Awaitable[Mapping[str, str]]]


@dataclass(frozen=True)
class PingResult:
    """Body of a GET /api/ping response."""

    reachable: bool
    status: str
    color: str
    title: str
    service_type: str
    service_name: str
    description: str | None = None
    protocol: str | None = None


class PingLogThrottle:
    """Rate limiter for per-ping debug lines.

    The first few messages are logged, then one message plus a summary line at
    most every ``interval`` seconds.
    """

    def __init__(
        self,
        burst: int = PING_LOG_BURST,
        interval: float = PING_SUMMARY_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.burst = burst
        self.interval = interval
        self._clock = clock
        self.count = 0
        self.started_at = clock()
        self.last_summary_at = self.started_at

    def log(self, message: str, force: bool = False) -> bool:
        """Log ``message`` at debug if the throttle allows it."""
        self.count += 1
        now = self._clock()
        summary_due = now - self.last_summary_at > self.interval
        if not (self.count <= self.burst or force or summary_due):
            return False

        logger.debug(message)
        if summary_due:
            elapsed = now - self.started_at
            logger.debug(f"[PING SUMMARY] {self.count} pings processed in {elapsed:.1f}s")
            self.last_summary_at = now
        return True


ping_log = PingLogThrottle()


def container_health_result(
    health: Mapping[str, str], descriptor: ServiceDescriptor
) -> PingResult:
    """Status of an internal port, judged from its container's health."""
    state = (health.get("status") or "").lower()
    check = (health.get("health") or "").lower()

    if state == "running":
        if check == "healthy":
            color, status, title = "green", "reachable", "Container healthy"
        elif check == "unhealthy":
            color, status, title = "yellow", "unknown", "Container unhealthy"
        else:
            color, status, title = "yellow", "unknown", "Container running"
    elif state in ("exited", "dead", "created"):
        color, status, title = "red", "unreachable", "Container not running"
    else:
        color, status, title = "gray", "unknown", "Container status unknown"

    return PingResult(
        reachable=color == "green",
        status=status,
        color=color,
        title=title,
        service_type=ServiceType.SERVICE.value,
        service_name=descriptor.name,
        description="Internal port status based on container health",
    )


def parse_default_gateway(route_table: str) -> str | None:
    """Extract the default gateway from the text of /proc/net/route."""
    for line in route_table.splitlines():
        fields = line.split("\t")
        if len(fields) < 8:
            continue
        if fields[1] == "00000000" and fields[7] == "00000000":
            gateway_hex = fields[2]
            try:
                octets = [int(gateway_hex[i : i + 2], 16) for i in (6, 4, 2, 0)]
            except ValueError:
                continue
            return ".".join(str(octet) for octet in octets)
    return None


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text()
    except OSError:
        return None


def is_docker_desktop(proc_root: Path = Path("/proc")) -> bool:
    if settings.docker_desktop:
        return True
    version = _read_text(proc_root / "version") or ""
    return "linuxkit" in version or "docker-desktop" in version


def is_running_in_docker(proc_root: Path = Path("/proc")) -> bool:
    if settings.running_in_docker or Path("/.dockerenv").exists():
        return True
    return "docker" in (_read_text(proc_root / "self" / "cgroup") or "")


def get_docker_host_ip(proc_root: Path = Path("/proc")) -> str:
    """Address of the Docker host as seen from inside a container."""
    if settings.docker_host_ip:
        return settings.docker_host_ip
    if sys.platform in ("darwin", "win32") or is_docker_desktop(proc_root):
        return DOCKER_DESKTOP_HOST

    route_table = _read_text(proc_root / "net" / "route")
    if route_table:
        gateway = parse_default_gateway(route_table)
        if gateway:
            return gateway
    logger.warning(f"Could not detect Docker host IP, falling back to {DEFAULT_DOCKER_HOST_IP}")
    return DEFAULT_DOCKER_HOST_IP


def resolve_pingable_host(
    host_ip: str,
    target_server_url: str | None = None,
    in_docker: bool | None = None,
) -> str:
    """Turn a bind address into a host this process can actually connect to.

    Wildcard and loopback bindings point at the peer's hostname when pinging
    on behalf of a peer, at the Docker host when running in a container, and
    at ``localhost`` otherwise.
    """
    if host_ip not in LOCAL_BIND_ADDRESSES:
        ping_log.log(f"Using provided host_ip '{host_ip}'")
        return host_ip

    if target_server_url:
        hostname = urlsplit(target_server_url).hostname
        if hostname:
            ping_log.log(f"Using peer server hostname '{hostname}' for generic host_ip '{host_ip}'")
            return hostname
        logger.error(f"Invalid target_server_url: {target_server_url}")

    if in_docker is None:
        in_docker = is_running_in_docker()
    if in_docker:
        docker_host = get_docker_host_ip()
        ping_log.log(f"Detected Docker environment, using host IP '{docker_host}'")
        return docker_host
    return "localhost"


async def ping_port(
    probe: ReachabilityProbe,
    host_ip: str,
    host_port: int,
    owner: str | None = None,
    internal: bool = False,
    container_id: str | None = None,
    source: str | None = None,
    target_server_url: str | None = None,
    health_lookup: HealthLookup | None = None,
    in_docker: bool | None = None,
) -> PingResult:
    """Classify, probe and resolve the status of one local port."""
    descriptor = detect_service_type(host_port, owner)

    if internal and container_id:
        if health_lookup is None:
            health: Mapping[str, str] = {"status": "unknown", "health": "unknown"}
        else:
            health = await health_lookup(container_id)
        return container_health_result(health, descriptor)

    if descriptor.type == ServiceType.SYSTEM or source == "system":
        from_system = source == "system"
        return PingResult(
            reachable=True,
            status="system",
            color="gray",
            title="System service" if from_system else descriptor.description,
            service_type=ServiceType.SYSTEM.value,
            service_name="System Service" if from_system else descriptor.name,
        )

    host = resolve_pingable_host(host_ip, target_server_url, in_docker=in_docker)
    https_result = await probe.probe("https", host, host_port)
    http_result = await probe.probe("http", host, host_port)
    status = determine_service_status(descriptor, https_result, http_result)

    ping_log.log(
        f"Service status for {host}:{host_port} -> {status.status.value} ({status.color.value})",
        force=not status.reachable,
    )
    return PingResult(
        reachable=status.reachable,
        status=status.status.value,
        color=status.color.value,
        title=status.title,
        service_type=descriptor.type.value,
        service_name=descriptor.name,
        description=status.description,
        protocol=status.protocol,
    )


async def proxy_remote_ping(
    server_url: str,
    params: Mapping[str, str],
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[int, Any]:
    """Forward a ping to a peer server and return its status code and body."""
    return await fetch_from_peer(
        server_url,
        "/api/ping",
        params,
        action="remote ping",
        timeout=timeout,
        transport=transport,
    )

"""Container details assembled from a Docker inspect document."""

import logging
import re
from datetime import datetime, timezone
from typing import Any

import httpx

from portracker.collectors.docker import SHORT_ID_LENGTH, DockerCollector, container_health
from portracker.core.errors import CollectionError, NotFoundError

logger = logging.getLogger(__name__)

# Containers without a restart policy that started this recently are
# reported as ephemeral (one-off runs, CI jobs)
EPHEMERAL_UPTIME_SECONDS = 300

DOCKER_TIME_RE = re.compile(
    r"(\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d)(?:\.(\d+))?(Z|[+-]\d\d:\d\d)?$"
)


def _parse_docker_time(value: str | None) -> datetime | None:
    """Parse Docker's RFC 3339 timestamps, which carry nanoseconds."""
    if not value:
        return None
    match = DOCKER_TIME_RE.match(value)
    if match is None or match.group(1).startswith("0001-"):
        return None
    base, fraction, zone = match.groups()
    text = base
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    text += "+00:00" if zone in (None, "Z") else zone
    return datetime.fromisoformat(text)


def port_mappings(inspect: dict[str, Any]) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Split ``NetworkSettings.Ports`` into mappings and exposed-only ports.

    Exposed ports without a host binding are also listed as mappings, with
    ``internal`` set and the container port standing in for the host port.
    """
    ports = (inspect.get("NetworkSettings") or {}).get("Ports") or {}
    mappings: list[dict[str, Any]] = []
    exposed_unmapped: list[dict[str, Any]] = []

    for container_port, bindings in ports.items():
        port_text, _, protocol = str(container_port).partition("/")
        protocol = protocol or "tcp"
        try:
            port = int(port_text)
        except ValueError:
            logger.debug(f"Skipping unparseable container port {container_port!r}")
            continue

        if bindings:
            for binding in bindings:
                try:
                    host_port = int(binding.get("HostPort") or 0)
                except ValueError:
                    continue
                mappings.append(
                    {
                        "host_ip": binding.get("HostIp") or "0.0.0.0",
                        "host_port": host_port,
                        "container_port": port,
                        "protocol": protocol,
                    }
                )
        else:
            mappings.append(
                {
                    "host_ip": "0.0.0.0",
                    "host_port": port,
                    "container_port": port,
                    "protocol": protocol,
                    "internal": True,
                }
            )
            exposed_unmapped.append({"port": port, "protocol": protocol})

    return mappings, exposed_unmapped


def build_container_details(
    inspect: dict[str, Any],
    size: bool = False,
    raw: bool = False,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Summarize an inspect document for display."""
    now = now or datetime.now(timezone.utc)
    state = inspect.get("State") or {}
    config = inspect.get("Config") or {}
    host_config = inspect.get("HostConfig") or {}
    restart = host_config.get("RestartPolicy") or {}

    raw_policy = restart.get("Name")
    restart_policy = raw_policy or "none"

    started_at = _parse_docker_time(state.get("StartedAt"))
    uptime_seconds = None
    if started_at is not None and state.get("Running"):
        uptime_seconds = max(0, int((now - started_at).total_seconds()))

    created = _parse_docker_time(inspect.get("Created"))
    command = config.get("Cmd")
    if isinstance(command, list):
        command = " ".join(str(part) for part in command)

    mappings, exposed_unmapped = port_mappings(inspect)
    networks = (inspect.get("NetworkSettings") or {}).get("Networks") or {}
    digests = inspect.get("RepoDigests") or []

    details: dict[str, Any] = {
        "id": str(inspect.get("Id") or "")[:SHORT_ID_LENGTH],
        "name": str(inspect.get("Name") or "").lstrip("/"),
        "image": config.get("Image"),
        "command": command,
        "created": int(created.timestamp()) if created else None,
        "createdISO": inspect.get("Created"),
        "state": state.get("Status"),
        "health": container_health(inspect)["health"],
        "restartCount": inspect.get("RestartCount") if isinstance(inspect.get("RestartCount"), int) else 0,
        "restartPolicy": restart_policy,
        "restartPolicyRaw": raw_policy,
        "restartRetries": restart.get("MaximumRetryCount"),
        "networkMode": host_config.get("NetworkMode") or "",
        "ports": mappings,
        "exposedUnmapped": exposed_unmapped,
        "labels": config.get("Labels") or {},
        "mounts": [
            {
                "type": mount.get("Type"),
                "source": mount.get("Source"),
                "destination": mount.get("Destination"),
            }
            for mount in inspect.get("Mounts") or []
        ],
        "networks": [
            {
                "name": name,
                "ip": network.get("IPAddress") or None,
                "gateway": network.get("Gateway") or None,
                "mac": network.get("MacAddress") or None,
                "driver": network.get("Driver") or None,
            }
            for name, network in networks.items()
        ],
        "imageDigest": digests[0] if digests else None,
        "uptimeSeconds": uptime_seconds,
        "ephemeral": (
            restart_policy == "none"
            and uptime_seconds is not None
            and uptime_seconds < EPHEMERAL_UPTIME_SECONDS
        ),
    }
    if size:
        details["sizeRwBytes"] = inspect.get("SizeRw")
        details["sizeRootFsBytes"] = inspect.get("SizeRootFs")
    if raw:
        details["raw"] = inspect
    return details


async def get_container_details(
    docker: DockerCollector,
    container_id: str,
    size: bool = False,
    raw: bool = False,
) -> dict[str, Any]:
    """Inspect a local container and summarize it."""
    try:
        inspect = await docker.inspect_container(container_id, size=size)
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            raise NotFoundError(
                "Container not found", details=f"No container with id '{container_id}'"
            ) from e
        logger.error(f"Docker rejected inspect of {container_id}: {e}")
        raise CollectionError(str(e), message="Failed to get container details") from e
    except httpx.HTTPError as e:
        logger.error(f"Docker API unavailable while inspecting {container_id}: {e}")
        raise CollectionError(str(e), message="Failed to get container details") from e

    return build_container_details(inspect, size=size, raw=raw)

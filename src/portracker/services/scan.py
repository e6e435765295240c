"""Server scans: everything a server's collectors report, with annotations."""

import logging
from collections.abc import Sequence
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from portracker.collectors import COLLECTORS, BaseCollector, PortObservation, create_collector
from portracker.core.errors import (
    CollectionError,
    IdentityValidationError,
    PeerUnavailableError,
    UnsupportedOperationError,
)
from portracker.models.server import LOCAL_SERVER_ID, Server
from portracker.services.ignores import is_ignored
from portracker.services.notes import get_note
from portracker.services.peers import fetch_from_peer
from portracker.services.port_identity import PortIdentity
from portracker.services.servers import get_servers

logger = logging.getLogger(__name__)

# Platform reported when several collectors were merged
MERGED_PLATFORM = "auto"


def select_collectors(
    server: Server, default_collectors: Sequence[BaseCollector], debug: bool = False
) -> list[BaseCollector]:
    """Collectors to scan the local server with.

    A ``platform_type`` naming a known collector pins the scan to that one;
    anything else (``unknown``, ``auto``) uses the default set.
    """
    platform_type = (server.platform_type or "").lower()
    if platform_type in COLLECTORS:
        return [create_collector(platform_type, debug=debug)]
    return list(default_collectors)


async def annotate_port(
    db: AsyncSession, server_id: str, observation: PortObservation
) -> dict[str, Any]:
    """Port dict with the stored ``note`` and ``ignored`` state attached."""
    port = observation.to_dict()
    try:
        identity = PortIdentity.from_observation(observation, server_id=server_id)
    except IdentityValidationError as e:
        logger.debug(f"Port {port} has no usable identity ({e.field}), left unannotated")
        port.update(note=None, ignored=False)
        return port

    note = await get_note(db, identity)
    port["note"] = note.note if note is not None else None
    port["ignored"] = await is_ignored(db, identity)
    return port


async def scan_local(
    db: AsyncSession,
    server: Server,
    collectors: Sequence[BaseCollector],
) -> dict[str, Any]:
    """Run ``collect_all`` on each collector and merge the results in order."""
    observations: list[PortObservation] = []
    apps: list[dict[str, Any]] = []
    vms: list[dict[str, Any]] = []
    for collector in collectors:
        try:
            collected = await collector.collect_all()
        except Exception as e:
            logger.error(f"Collector '{collector.platform}' failed during scan: {e}")
            raise CollectionError(str(e), message="Failed to scan server") from e
        observations.extend(collected["ports"])
        apps.extend(collected["apps"])
        vms.extend(collected["vms"])

    ports = [await annotate_port(db, server.id, observation) for observation in observations]
    platform = collectors[0].platform if len(collectors) == 1 else MERGED_PLATFORM
    logger.debug(
        f"Local scan complete. Collectors: {[c.platform for c in collectors]}, "
        f"Apps: {len(apps)}, Ports: {len(ports)}, VMs: {len(vms)}"
    )
    return {"ports": ports, "apps": apps, "vms": vms, "platform": platform}


async def scan_server(
    db: AsyncSession,
    server: Server,
    default_collectors: Sequence[BaseCollector],
    debug: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """Scan the local server directly, or ask a peer to scan itself."""
    if server.id == LOCAL_SERVER_ID:
        collectors = select_collectors(server, default_collectors, debug=debug)
        return await scan_local(db, server, collectors)

    if server.type == "peer" and server.url:
        logger.debug(f"Scanning peer {server.label} ({server.id}) at {server.url}")
        status_code, body = await fetch_from_peer(
            server.url,
            f"/api/servers/{LOCAL_SERVER_ID}/scan",
            {"debug": "true"} if debug else None,
            action="scan",
            transport=transport,
        )
        if status_code >= 400:
            logger.warning(
                f"Peer {server.url} answered scan with status {status_code}: {body}"
            )
            raise PeerUnavailableError(
                f"Peer server scan failed with status {status_code}",
                details=body if isinstance(body, str) else str(body),
                status_code=status_code,
            )
        return body

    logger.warning(f"Cannot scan server {server.id}: not local and not a peer with a url")
    raise UnsupportedOperationError(
        "Server scanning not possible for this server type or configuration",
        details=f"Server '{server.id}' has no url to scan",
    )


async def collect_all_ports(
    db: AsyncSession, collectors: Sequence[BaseCollector]
) -> list[dict[str, Any]]:
    """One entry per registered server, with the local server's raw ports.

    Peers are listed without ports; their data comes from scanning them.
    """
    results: list[dict[str, Any]] = []
    for server in await get_servers(db):
        entry: dict[str, Any] = {
            "id": server.id,
            "server": server.label,
            "ok": False,
            "error": "Peer ports are collected by scanning the peer",
            "data": [],
            "parentId": server.parent_id,
            "platform_type": server.platform_type or "unknown",
        }
        if server.id == LOCAL_SERVER_ID:
            try:
                observations: list[PortObservation] = []
                for collector in collectors:
                    observations.extend(await collector.get_ports())
            except Exception as e:
                logger.error(f"Failed to get local ports for all-ports listing: {e}")
                entry["error"] = f"Failed to collect local ports: {e}"
            else:
                entry.update(
                    ok=True, error=None, data=[item.to_dict() for item in observations]
                )
        results.append(entry)
    return results

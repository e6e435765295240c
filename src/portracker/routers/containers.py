"""Container details router."""

from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from portracker.core.deps import DbSession, DockerCollectorDep, require_server
from portracker.core.errors import IdentityValidationError
from portracker.models.server import LOCAL_SERVER_ID
from portracker.services import containers as containers_service
from portracker.services import peers as peers_service

router = APIRouter(prefix="/api/containers", tags=["containers"])


@router.get(
    "/{container_id}/details",
    responses={
        status.HTTP_408_REQUEST_TIMEOUT: {"description": "Peer server timed out"},
        status.HTTP_502_BAD_GATEWAY: {"description": "Peer server unreachable"},
    },
)
async def get_container_details(
    db: DbSession,
    docker: DockerCollectorDep,
    container_id: str,
    server_id: str | None = None,
    size: bool = Query(False),
    raw: bool = Query(False),
) -> Any:
    """Get image, state, health and port mappings of a container.

    Containers on a peer server are looked up by that peer.
    """
    if server_id and server_id != LOCAL_SERVER_ID:
        server = await require_server(db, server_id)
        if not server.url:
            raise IdentityValidationError(
                "server_id", "server url not found for remote details"
            )
        params = {flag: "true" for flag, enabled in (("size", size), ("raw", raw)) if enabled}
        status_code, body = await peers_service.fetch_from_peer(
            server.url,
            f"/api/containers/{quote(container_id, safe='')}/details",
            params,
            action="container details",
        )
        return JSONResponse(status_code=status_code, content=body)

    return await containers_service.get_container_details(
        docker, container_id, size=size, raw=raw
    )

"""Port reachability router."""

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from portracker.core.deps import DbSession, DockerCollectorDep, ProbeDep, require_server
from portracker.core.errors import IdentityValidationError
from portracker.models.server import LOCAL_SERVER_ID
from portracker.schemas.port import PingResponse
from portracker.services import ping as ping_service

router = APIRouter(prefix="/api", tags=["ping"])


@router.get(
    "/ping",
    response_model=PingResponse,
    responses={
        status.HTTP_408_REQUEST_TIMEOUT: {"description": "Peer server timed out"},
        status.HTTP_502_BAD_GATEWAY: {"description": "Peer server unreachable"},
    },
)
async def ping(
    db: DbSession,
    probe: ProbeDep,
    docker: DockerCollectorDep,
    host_ip: str = Query(min_length=1),
    host_port: int = Query(ge=1, le=65535),
    owner: str | None = None,
    internal: bool = False,
    container_id: str | None = None,
    source: str | None = None,
    server_id: str | None = None,
    target_server_url: str | None = None,
) -> PingResponse | JSONResponse:
    """Report whether a port answers as a usable service.

    Internal container ports are judged by container health. Those of a peer
    server are checked by that peer, with this endpoint proxying the request.
    """
    if internal and container_id and server_id and server_id != LOCAL_SERVER_ID:
        server = await require_server(db, server_id)
        if not server.url:
            raise IdentityValidationError("server_id", "server url not found for remote ping")

        params = {
            "internal": "true",
            "container_id": container_id,
            "host_ip": host_ip,
            "host_port": str(host_port),
        }
        if owner:
            params["owner"] = owner
        if source:
            params["source"] = source
        status_code, body = await ping_service.proxy_remote_ping(server.url, params)
        return JSONResponse(status_code=status_code, content=body)

    result = await ping_service.ping_port(
        probe,
        host_ip=host_ip,
        host_port=host_port,
        owner=owner,
        internal=internal,
        container_id=container_id,
        source=source,
        target_server_url=target_server_url,
        health_lookup=docker.get_container_health,
    )
    return PingResponse.model_validate(result, from_attributes=True)

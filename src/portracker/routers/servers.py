"""Server registry router."""

from typing import Any

from fastapi import APIRouter, Query, Response, status

from portracker.core.deps import CollectorsDep, DbSession, require_server
from portracker.core.errors import IdentityValidationError
from portracker.models.server import LOCAL_SERVER_ID
from portracker.schemas.server import (
    ServerDeleteResponse,
    ServerResponse,
    ServerSaveRequest,
    ServerSaveResponse,
)
from portracker.services import scan as scan_service
from portracker.services import servers as servers_service
from portracker.services.annotations import commit

router = APIRouter(prefix="/api/servers", tags=["servers"])


@router.get("", response_model=list[ServerResponse])
async def list_servers(db: DbSession) -> list[ServerResponse]:
    """Get the local server and all registered peers."""
    servers = await servers_service.get_servers(db)
    return [ServerResponse.model_validate(server) for server in servers]


@router.post("", response_model=ServerSaveResponse, status_code=status.HTTP_201_CREATED)
async def save_server(
    db: DbSession,
    request: ServerSaveRequest,
    response: Response,
) -> ServerSaveResponse:
    """Add a server, or update it when the id is already registered."""
    server, created = await servers_service.save_server(
        db,
        server_id=request.id,
        label=request.label,
        url=request.url,
        server_type=request.type,
        parent_id=request.parent_id,
        platform_type=request.platform_type,
        unreachable=request.unreachable,
    )
    await commit(db, f"server {server.id}")
    if not created:
        response.status_code = status.HTTP_200_OK
        return ServerSaveResponse(message="Server updated successfully", id=server.id)
    return ServerSaveResponse(message="Server added successfully", id=server.id)


@router.delete("/{server_id}", response_model=ServerDeleteResponse)
async def delete_server(db: DbSession, server_id: str) -> ServerDeleteResponse:
    """Delete a peer server together with its annotations."""
    server = await require_server(db, server_id)
    if server.id == LOCAL_SERVER_ID:
        raise IdentityValidationError("id", "Cannot delete local server")

    label = server.label
    await servers_service.delete_server(db, server)
    await commit(db, f"deletion of server {server_id}")
    return ServerDeleteResponse(
        message=f"Server '{label}' (ID: {server_id}) deleted successfully"
    )


@router.get(
    "/{server_id}/scan",
    responses={
        status.HTTP_408_REQUEST_TIMEOUT: {"description": "Peer server timed out"},
        status.HTTP_501_NOT_IMPLEMENTED: {"description": "Server cannot be scanned"},
        status.HTTP_502_BAD_GATEWAY: {"description": "Peer server unreachable"},
    },
)
async def scan_server(
    db: DbSession,
    collectors: CollectorsDep,
    server_id: str,
    debug: bool = Query(False),
) -> Any:
    """Collect ports, apps and VMs of a server.

    Local ports carry their stored note and ignored state. Peers are asked to
    scan themselves and their answer is passed through.
    """
    server = await require_server(db, server_id)
    return await scan_service.scan_server(db, server, collectors, debug=debug)

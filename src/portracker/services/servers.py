"""Server registry service: the local host and its registered peers."""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portracker.core.config import settings
from portracker.core.errors import IdentityValidationError
from portracker.models.server import LOCAL_SERVER_ID, Server
from portracker.services.annotations import storage_operation

logger = logging.getLogger(__name__)


async def get_servers(db: AsyncSession) -> list[Server]:
    """Get all servers, local first."""
    stmt = select(Server).order_by((Server.id != LOCAL_SERVER_ID), Server.label)
    async with storage_operation("listing servers"):
        result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_server_by_id(db: AsyncSession, server_id: str) -> Server | None:
    """Get a server by its ID."""
    async with storage_operation("reading server"):
        result = await db.execute(select(Server).where(Server.id == server_id))
    return result.scalar_one_or_none()


async def save_server(
    db: AsyncSession,
    server_id: str,
    label: str,
    url: str | None = None,
    server_type: str = "peer",
    parent_id: str | None = None,
    platform_type: str | None = None,
    unreachable: bool = False,
) -> tuple[Server, bool]:
    """Insert a server or update it in place.

    Returns the server and True when it was newly created.
    """
    if server_type == "peer" and not unreachable and not (url or "").strip():
        raise IdentityValidationError("url", "Field 'url' is required for reachable peer servers")

    async with storage_operation(f"saving server {server_id}"):
        server = await get_server_by_id(db, server_id)
        created = server is None
        if server is None:
            server = Server(id=server_id, label=label)
            db.add(server)

        server.label = label
        server.url = url
        server.type = server_type
        server.parent_id = parent_id or None
        server.platform_type = platform_type or "unknown"
        server.unreachable = unreachable

        await db.flush()
        await db.refresh(server)

    logger.info(f"Server {'added' if created else 'updated'}: {server_id} ({label})")
    return server, created


async def delete_server(db: AsyncSession, server: Server) -> None:
    """Delete a server; its annotations cascade and its children are detached."""
    async with storage_operation(f"deleting server {server.id}"):
        await db.execute(
            update(Server).where(Server.parent_id == server.id).values(parent_id=None)
        )
        await db.delete(server)
        await db.flush()
    logger.info(f"Server deleted: {server.id} ({server.label})")


async def ensure_local_server(db: AsyncSession) -> Server:
    """Create the local server row if it does not exist yet."""
    server = await get_server_by_id(db, LOCAL_SERVER_ID)
    if server is not None:
        return server

    server = Server(
        id=LOCAL_SERVER_ID,
        label="Local Server",
        url=f"http://localhost:{settings.port}",
        type="local",
        platform_type="unknown",
        unreachable=False,
    )
    db.add(server)
    async with storage_operation("creating local server"):
        await db.flush()
        await db.refresh(server)
    logger.info("Local server entry created")
    return server

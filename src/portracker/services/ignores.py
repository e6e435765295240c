"""Ignored-port service."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portracker.core.cache import TTLCache, invalidate_ports_cache
from portracker.models.port_ignore import PortIgnore
from portracker.services.annotations import (
    delete_identity_rows,
    identity_columns,
    identity_filter,
    storage_operation,
)
from portracker.services.port_identity import PortIdentity

logger = logging.getLogger(__name__)


async def get_ignores(db: AsyncSession, server_id: str) -> list[PortIgnore]:
    """Get all ignored ports for a server."""
    stmt = (
        select(PortIgnore)
        .where(PortIgnore.server_id == server_id)
        .order_by(PortIgnore.host_ip, PortIgnore.host_port, PortIgnore.protocol)
    )
    async with storage_operation("listing ignores"):
        result = await db.execute(stmt)
    return list(result.scalars().all())


async def is_ignored(db: AsyncSession, identity: PortIdentity) -> bool:
    stmt = select(PortIgnore.server_id).where(*identity_filter(PortIgnore, identity))
    async with storage_operation("reading ignore"):
        result = await db.execute(stmt)
    return result.first() is not None


async def set_ignore(
    db: AsyncSession,
    identity: PortIdentity,
    ignored: bool,
    cache: TTLCache | None = None,
) -> bool:
    """Mark or unmark a port as ignored.

    Returns True when the stored state changed. Repeating the same call is a
    no-op.
    """
    async with storage_operation("updating ignore status"):
        currently_ignored = await is_ignored(db, identity)

        if ignored == currently_ignored:
            state = "ignored" if ignored else "not ignored"
            logger.debug(f"Port already {state} for {identity.describe()}, no change")
            return False

        if ignored:
            db.add(PortIgnore(**identity_columns(identity)))
        else:
            await delete_identity_rows(db, PortIgnore, identity)
        await db.flush()

    logger.info(f"Port {'ignored' if ignored else 'un-ignored'} for {identity.describe()}")
    invalidate_ports_cache(cache)
    return True

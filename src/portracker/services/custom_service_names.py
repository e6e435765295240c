"""Custom service name service.

Names set on a wildcard binding (``0.0.0.0`` or ``::``) without a container
are mirrored to the other wildcard address, because dual-stack services show
up under both and users expect one rename to cover both rows. The mirror write
is best effort: it runs in a savepoint and a failure there never fails the
primary write.
"""

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portracker.core.cache import TTLCache, invalidate_ports_cache
from portracker.core.errors import IdentityValidationError, StorageError
from portracker.models.custom_service_name import CustomServiceName
from portracker.schemas.annotation import CustomServiceNameBatchOperation
from portracker.services.annotations import (
    batch_failure,
    best_effort,
    commit,
    delete_identity_rows,
    identity_columns,
    identity_filter,
    storage_operation,
    validation_failure,
)
from portracker.services.port_identity import PortIdentity

logger = logging.getLogger(__name__)


async def get_custom_service_name(
    db: AsyncSession, identity: PortIdentity
) -> CustomServiceName | None:
    """Get the custom name stored for an identity."""
    stmt = select(CustomServiceName).where(*identity_filter(CustomServiceName, identity))
    async with storage_operation("reading custom service name"):
        result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_custom_service_names(db: AsyncSession, server_id: str) -> list[CustomServiceName]:
    """Get all custom service names for a server."""
    stmt = (
        select(CustomServiceName)
        .where(CustomServiceName.server_id == server_id)
        .order_by(
            CustomServiceName.host_ip, CustomServiceName.host_port, CustomServiceName.protocol
        )
    )
    async with storage_operation("listing custom service names"):
        result = await db.execute(stmt)
    return list(result.scalars().all())


async def _write_name(
    db: AsyncSession,
    identity: PortIdentity,
    custom_name: str,
    original_name: str | None,
) -> str:
    stmt = select(CustomServiceName).where(*identity_filter(CustomServiceName, identity))
    existing = (await db.execute(stmt)).scalar_one_or_none()

    if existing is None:
        row = CustomServiceName(
            **identity_columns(identity),
            custom_name=custom_name,
            original_name=original_name,
        )
        db.add(row)
        action = "created"
    else:
        row = existing
        row.custom_name = custom_name
        row.original_name = original_name
        row.updated_at = func.now()
        action = "updated"

    await db.flush()
    await db.refresh(row)
    return action


async def upsert_custom_service_name(
    db: AsyncSession,
    identity: PortIdentity,
    custom_name: str,
    original_name: str | None = None,
    cache: TTLCache | None = None,
) -> str:
    """Set the custom name for a port. Returns ``created`` or ``updated``."""
    name = (custom_name or "").strip()
    if not name:
        raise IdentityValidationError(
            "custom_name", "custom_name is required and must be a non-empty string"
        )
    original = original_name.strip() if original_name and original_name.strip() else None

    async with storage_operation("saving custom service name"):
        action = await _write_name(db, identity, name, original)
    logger.info(f"Custom service name {action} for {identity.describe()}")

    sibling = identity.wildcard_sibling()
    if sibling is not None:

        async def mirror() -> str:
            return await _write_name(db, sibling, name, original)

        mirror_action = await best_effort(db, f"mirror write to {sibling.host_ip}", mirror)
        if mirror_action is not None:
            logger.info(f"Custom service name {mirror_action} for {sibling.describe()} (mirror)")

    invalidate_ports_cache(cache)
    return action


async def delete_custom_service_name(
    db: AsyncSession, identity: PortIdentity, cache: TTLCache | None = None
) -> int:
    """Delete the custom name for a port, returning the number of rows removed.

    When nothing matches and a container id was given, the row written before
    container ids were tracked (same address, no container) is removed
    instead. Wildcard bindings also lose their mirrored row.
    """
    async with storage_operation("deleting custom service name"):
        deleted = await delete_identity_rows(db, CustomServiceName, identity)

        if deleted == 0 and identity.container_id is not None:
            legacy = await delete_identity_rows(
                db, CustomServiceName, identity.without_container()
            )
            if legacy:
                logger.info(
                    f"Custom service name deleted for {identity.without_container().describe()} "
                    "(legacy record without container_id)"
                )
            deleted += legacy
        await db.flush()

    sibling = identity.wildcard_sibling()
    if sibling is not None:

        async def mirror() -> int:
            return await delete_identity_rows(db, CustomServiceName, sibling)

        mirrored = await best_effort(db, f"mirror delete on {sibling.host_ip}", mirror)
        if mirrored:
            logger.info(f"Custom service name deleted for {sibling.describe()} (mirror)")
            deleted += mirrored

    if deleted:
        logger.info(f"Custom service name deleted for {identity.describe()}")
        invalidate_ports_cache(cache)
    else:
        logger.debug(f"No custom service name to delete for {identity.describe()}")
    return deleted


async def batch_custom_service_names(
    db: AsyncSession,
    server_id: str,
    operations: Sequence[Any],
    cache: TTLCache | None = None,
) -> list[dict[str, Any]]:
    """Apply custom name operations in order, committing each one.

    Outcomes carry ``action`` ``created``, ``updated``, ``deleted`` or
    ``not_found`` on success, and ``error`` (plus ``field`` for validation
    problems) on failure.
    """
    results: list[dict[str, Any]] = []
    for index, raw in enumerate(operations):
        try:
            op = CustomServiceNameBatchOperation.model_validate(raw)
            identity = op.to_identity(server_id)
        except ValidationError as exc:
            results.append(validation_failure(index, exc))
            continue
        except IdentityValidationError as exc:
            results.append(batch_failure(index, exc.details or exc.message, field=exc.field))
            continue

        entry: dict[str, Any] = {
            "index": index,
            "host_ip": identity.host_ip,
            "host_port": identity.host_port,
            "protocol": identity.protocol,
            "container_id": identity.container_id,
            "internal": identity.internal,
        }
        try:
            if op.action == "set":
                entry["action"] = await upsert_custom_service_name(
                    db, identity, op.custom_name or "", op.original_name, cache=cache
                )
            else:
                removed = await delete_custom_service_name(db, identity, cache=cache)
                entry["action"] = "deleted" if removed else "not_found"
            await commit(db, f"custom service name operation {index}")
            entry["success"] = True
        except IdentityValidationError as exc:
            entry.update(success=False, error=exc.details or exc.message, field=exc.field)
        except StorageError as exc:
            await db.rollback()
            logger.error(
                f"Error in batch custom service name operation {index} for {server_id}: "
                f"{exc.details}"
            )
            entry.update(success=False, error=exc.details or exc.message)
        results.append(entry)

    succeeded = sum(1 for item in results if item.get("success"))
    logger.info(
        f"Batch custom service name operation completed for {server_id}: "
        f"{succeeded}/{len(results)} operations applied"
    )
    return results

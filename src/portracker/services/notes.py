"""Port note service: free-text notes keyed by port identity."""

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Any

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portracker.core.cache import TTLCache, invalidate_ports_cache
from portracker.core.errors import IdentityValidationError, StorageError
from portracker.models.note import Note
from portracker.schemas.annotation import NoteBatchOperation
from portracker.services.annotations import (
    batch_failure,
    commit,
    delete_identity_rows,
    identity_columns,
    identity_filter,
    storage_operation,
    validation_failure,
)
from portracker.services.port_identity import PortIdentity

logger = logging.getLogger(__name__)


class NoteOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    UNCHANGED = "unchanged"


async def get_note(db: AsyncSession, identity: PortIdentity) -> Note | None:
    """Get the note stored for an identity."""
    stmt = select(Note).where(*identity_filter(Note, identity))
    async with storage_operation("reading note"):
        result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_notes(db: AsyncSession, server_id: str) -> list[Note]:
    """Get all notes for a server."""
    stmt = (
        select(Note)
        .where(Note.server_id == server_id)
        .order_by(Note.host_ip, Note.host_port, Note.protocol)
    )
    async with storage_operation("listing notes"):
        result = await db.execute(stmt)
    return list(result.scalars().all())


async def upsert_note(
    db: AsyncSession,
    identity: PortIdentity,
    text: str | None,
    cache: TTLCache | None = None,
) -> NoteOutcome:
    """Create, update or remove the note for a port.

    An empty (or whitespace-only) note deletes the existing row; writing an
    empty note where none exists is a no-op.
    """
    note_text = (text or "").strip()

    async with storage_operation("saving note"):
        existing = await get_note(db, identity)

        if existing is None:
            if not note_text:
                logger.debug(f"Empty note for {identity.describe()} with no existing row, no change")
                return NoteOutcome.UNCHANGED
            note = Note(**identity_columns(identity), note=note_text)
            db.add(note)
            await db.flush()
            await db.refresh(note)
            outcome = NoteOutcome.CREATED
        elif not note_text:
            await db.delete(existing)
            await db.flush()
            outcome = NoteOutcome.DELETED
        else:
            existing.note = note_text
            existing.updated_at = func.now()
            await db.flush()
            await db.refresh(existing)
            outcome = NoteOutcome.UPDATED

    logger.info(f"Note {outcome.value} for {identity.describe()}")
    invalidate_ports_cache(cache)
    return outcome


async def delete_note(
    db: AsyncSession, identity: PortIdentity, cache: TTLCache | None = None
) -> int:
    """Delete the note for an identity. Returns the number of rows removed."""
    async with storage_operation("deleting note"):
        deleted = await delete_identity_rows(db, Note, identity)
        await db.flush()

    if deleted:
        logger.info(f"Note deleted for {identity.describe()}")
        invalidate_ports_cache(cache)
    return deleted


async def batch_notes(
    db: AsyncSession,
    server_id: str,
    operations: Sequence[Any],
    cache: TTLCache | None = None,
) -> list[dict[str, Any]]:
    """Apply note operations one by one, committing each.

    A failing operation is reported in its own outcome and rolled back; items
    before and after it are unaffected. ``set`` with an empty note behaves as
    ``delete``.
    """
    results: list[dict[str, Any]] = []
    for index, raw in enumerate(operations):
        try:
            op = NoteBatchOperation.model_validate(raw)
            identity = op.to_identity(server_id)
        except ValidationError as exc:
            results.append(validation_failure(index, exc))
            continue
        except IdentityValidationError as exc:
            results.append(batch_failure(index, exc.details or exc.message, field=exc.field))
            continue

        entry: dict[str, Any] = {
            "index": index,
            "action": op.action,
            "host_ip": identity.host_ip,
            "host_port": identity.host_port,
            "protocol": identity.protocol,
            "container_id": identity.container_id,
            "internal": identity.internal,
        }
        try:
            if op.action == "set" and (op.note or "").strip():
                outcome = await upsert_note(db, identity, op.note, cache=cache)
                entry["result"] = outcome.value
            else:
                entry["deleted_count"] = await delete_note(db, identity, cache=cache)
            await commit(db, f"note operation {index}")
            entry["success"] = True
        except StorageError as exc:
            await db.rollback()
            logger.error(f"Error in batch note operation {index} for {server_id}: {exc.details}")
            entry.update(success=False, error=exc.details or exc.message)
        results.append(entry)

    succeeded = sum(1 for item in results if item.get("success"))
    logger.info(
        f"Batch note operation completed for {server_id}: "
        f"{succeeded}/{len(results)} operations applied"
    )
    return results

"""Helpers shared by the note, ignore and custom service name services."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from pydantic import ValidationError
from sqlalchemy import ColumnElement, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portracker.core.errors import ConflictError, StorageError
from portracker.services.port_identity import PortIdentity

logger = logging.getLogger(__name__)


def identity_filter(model: Any, identity: PortIdentity) -> list[ColumnElement[bool]]:
    """WHERE clauses matching exactly one identity row of an annotation table."""
    return [
        model.server_id == identity.server_id,
        model.host_ip == identity.host_ip,
        model.host_port == identity.host_port,
        model.protocol == identity.protocol,
        model.container_id == identity.stored_container_id,
        model.internal == identity.internal,
    ]


def identity_columns(identity: PortIdentity) -> dict[str, Any]:
    """Column values for inserting a row with this identity."""
    return {
        "server_id": identity.server_id,
        "host_ip": identity.host_ip,
        "host_port": identity.host_port,
        "protocol": identity.protocol,
        "container_id": identity.stored_container_id,
        "internal": identity.internal,
    }


def _error_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


@asynccontextmanager
async def storage_operation(action: str) -> AsyncIterator[None]:
    """Translate SQLAlchemy failures into StorageError, keeping the message."""
    try:
        yield
    except IntegrityError as exc:
        message = _error_message(exc)
        logger.error(f"Integrity error while {action}: {message}")
        raise ConflictError(message) from exc
    except SQLAlchemyError as exc:
        message = _error_message(exc)
        logger.error(f"Database error while {action}: {message}")
        raise StorageError(message) from exc


async def commit(db: AsyncSession, action: str) -> None:
    """Commit the session, raising StorageError when the commit fails."""
    async with storage_operation(f"committing {action}"):
        await db.commit()


async def delete_identity_rows(db: AsyncSession, model: Any, identity: PortIdentity) -> int:
    """Delete the row matching an identity, returning the number removed."""
    result = await db.execute(delete(model).where(*identity_filter(model, identity)))
    return result.rowcount or 0


async def best_effort(db: AsyncSession, action: str, operation: Any) -> Any | None:
    """Run ``operation()`` inside a savepoint, logging and swallowing failures.

    Used for wildcard mirror writes: losing the mirror must never undo or fail
    the primary write.
    """
    try:
        async with db.begin_nested():
            return await operation()
    except SQLAlchemyError as exc:
        logger.debug(f"Best-effort {action} skipped: {_error_message(exc)}")
        return None


def batch_failure(index: int, error: str, field: str | None = None, **extra: Any) -> dict[str, Any]:
    """Outcome entry for a batch operation that did not apply."""
    outcome: dict[str, Any] = {"index": index, "success": False, "error": error}
    if field is not None:
        outcome["field"] = field
    outcome.update(extra)
    return outcome


def validation_failure(index: int, exc: ValidationError) -> dict[str, Any]:
    """Turn a pydantic error for one batch item into a field-tagged outcome."""
    first = exc.errors()[0] if exc.errors() else {}
    location = first.get("loc") or ()
    field = str(location[-1]) if location else None
    message = first.get("msg", "Invalid operation")
    return batch_failure(index, message, field=field)

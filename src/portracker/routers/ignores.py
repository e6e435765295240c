"""Ignored ports router."""

from fastapi import APIRouter, Query

from portracker.core.deps import DbSession, ResponseCacheDep, require_server
from portracker.schemas.annotation import AnnotationSaveResponse, IgnoreRequest, IgnoreResponse
from portracker.services import ignores as ignores_service
from portracker.services.annotations import commit

router = APIRouter(prefix="/api/ignores", tags=["ignores"])


@router.get("", response_model=list[IgnoreResponse])
async def list_ignores(
    db: DbSession,
    server_id: str = Query(min_length=1),
) -> list[IgnoreResponse]:
    """Get all ignored ports for a server."""
    ignores = await ignores_service.get_ignores(db, server_id)
    return [IgnoreResponse.model_validate(item) for item in ignores]


@router.post("", response_model=AnnotationSaveResponse)
async def set_ignore(
    db: DbSession,
    cache: ResponseCacheDep,
    request: IgnoreRequest,
) -> AnnotationSaveResponse:
    """Mark or unmark a port as ignored."""
    await require_server(db, request.server_id)
    changed = await ignores_service.set_ignore(
        db, request.identity(), request.ignored, cache=cache
    )
    await commit(db, "ignore status")
    return AnnotationSaveResponse(
        message="Ignore status updated", action="changed" if changed else "unchanged"
    )

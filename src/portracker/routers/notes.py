"""Port notes router."""

from fastapi import APIRouter, Query

from portracker.core.deps import DbSession, ResponseCacheDep, require_server
from portracker.schemas.annotation import (
    AnnotationSaveResponse,
    BatchResponse,
    NoteBatchRequest,
    NoteRequest,
    NoteResponse,
)
from portracker.services import notes as notes_service
from portracker.services.annotations import commit

router = APIRouter(prefix="/api/notes", tags=["notes"])


@router.get("", response_model=list[NoteResponse])
async def list_notes(
    db: DbSession,
    server_id: str = Query(min_length=1),
) -> list[NoteResponse]:
    """Get all notes for a server."""
    notes = await notes_service.get_notes(db, server_id)
    return [NoteResponse.model_validate(note) for note in notes]


@router.post("", response_model=AnnotationSaveResponse)
async def save_note(
    db: DbSession,
    cache: ResponseCacheDep,
    request: NoteRequest,
) -> AnnotationSaveResponse:
    """Save the note of a port. An empty note deletes it."""
    await require_server(db, request.server_id)
    outcome = await notes_service.upsert_note(db, request.identity(), request.note, cache=cache)
    await commit(db, "note")
    return AnnotationSaveResponse(message="Note saved successfully", action=outcome.value)


@router.post("/batch", response_model=BatchResponse)
async def batch_notes(
    db: DbSession,
    cache: ResponseCacheDep,
    request: NoteBatchRequest,
) -> BatchResponse:
    """Apply several note operations; each one succeeds or fails on its own."""
    await require_server(db, request.server_id)
    results = await notes_service.batch_notes(
        db, request.server_id, request.operations, cache=cache
    )
    return BatchResponse(results=results)

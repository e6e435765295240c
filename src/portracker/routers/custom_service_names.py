"""Custom service names router."""

from fastapi import APIRouter, Query

from portracker.core.deps import DbSession, ResponseCacheDep, require_server
from portracker.core.errors import NotFoundError
from portracker.schemas.annotation import (
    AnnotationSaveResponse,
    BatchResponse,
    CustomServiceNameBatchRequest,
    CustomServiceNameDeleteRequest,
    CustomServiceNameRequest,
    CustomServiceNameResponse,
)
from portracker.services import custom_service_names as names_service
from portracker.services.annotations import commit

router = APIRouter(prefix="/api/custom-service-names", tags=["custom-service-names"])


@router.get("", response_model=list[CustomServiceNameResponse])
async def list_custom_service_names(
    db: DbSession,
    server_id: str = Query(min_length=1),
) -> list[CustomServiceNameResponse]:
    """Get all custom service names for a server."""
    names = await names_service.get_custom_service_names(db, server_id)
    return [CustomServiceNameResponse.model_validate(name) for name in names]


@router.post("", response_model=AnnotationSaveResponse)
async def save_custom_service_name(
    db: DbSession,
    cache: ResponseCacheDep,
    request: CustomServiceNameRequest,
) -> AnnotationSaveResponse:
    """Set the display name of a service."""
    await require_server(db, request.server_id)
    action = await names_service.upsert_custom_service_name(
        db,
        request.identity(),
        request.custom_name,
        request.original_name,
        cache=cache,
    )
    await commit(db, "custom service name")
    return AnnotationSaveResponse(
        message="Custom service name saved successfully", action=action
    )


@router.delete("", response_model=AnnotationSaveResponse)
async def delete_custom_service_name(
    db: DbSession,
    cache: ResponseCacheDep,
    request: CustomServiceNameDeleteRequest,
) -> AnnotationSaveResponse:
    """Remove the custom name of a service, restoring the detected one."""
    deleted = await names_service.delete_custom_service_name(db, request.identity(), cache=cache)
    if not deleted:
        raise NotFoundError("Custom service name not found")
    await commit(db, "custom service name")
    return AnnotationSaveResponse(
        message="Custom service name deleted successfully", action="deleted"
    )


@router.post("/batch", response_model=BatchResponse)
async def batch_custom_service_names(
    db: DbSession,
    cache: ResponseCacheDep,
    request: CustomServiceNameBatchRequest,
) -> BatchResponse:
    """Apply several rename operations; each one succeeds or fails on its own."""
    await require_server(db, request.server_id)
    results = await names_service.batch_custom_service_names(
        db, request.server_id, request.operations, cache=cache
    )
    return BatchResponse(results=results)

"""Health and version router."""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from portracker.core.deps import DbSession
from portracker.core.version import PACKAGE_NAME, get_version
from portracker.schemas.system import HealthResponse, VersionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["system"])

_started_at = time.monotonic()


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse | JSONResponse:
    """Health check endpoint, including a database round trip."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "error": str(e),
                "database": "disconnected_or_error",
            },
        )

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=round(time.monotonic() - _started_at, 3),
        database="connected",
    )


@router.get("/version", response_model=VersionResponse)
async def get_backend_version() -> VersionResponse:
    """Get the backend version."""
    return VersionResponse(
        version=get_version(),
        name=PACKAGE_NAME,
        description="Port discovery and reachability tracking",
    )

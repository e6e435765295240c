"""Portracker Backend - FastAPI Application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .collectors import create_collector
from .core.cache import TTLCache
from .core.config import settings
from .core.database import async_session_factory, init_db
from .core.errors import (
    ConflictError,
    IdentityValidationError,
    NotFoundError,
    PeerUnavailableError,
    PortrackerError,
    StorageError,
    UnsupportedOperationError,
)
from .core.logging import configure_logging
from .core.version import get_version
from .routers import (
    containers,
    custom_service_names,
    ignores,
    notes,
    ping,
    ports,
    servers,
    system,
)
from .services.reachability import ReachabilityProbe
from .services.servers import ensure_local_server

logger = logging.getLogger(__name__)


def init_app_state(app: FastAPI) -> None:
    """Create the shared cache, collectors and probe used by the routers."""
    docker_collector = create_collector("docker", debug=settings.debug)
    app.state.response_cache = TTLCache()
    app.state.docker_collector = docker_collector
    app.state.collectors = [docker_collector, create_collector("system", debug=settings.debug)]
    app.state.probe = ReachabilityProbe()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    configure_logging(settings.log_level, debug=settings.debug)
    logger.info(f"Portracker Backend v{get_version()} starting...")

    await init_db()

    async with async_session_factory() as db:
        try:
            await ensure_local_server(db)
            await db.commit()
        except StorageError as e:
            await db.rollback()
            logger.error(f"Failed to ensure local server entry: {e.details}")
            raise

    init_app_state(app)
    if settings.allow_insecure_tls_fallback:
        logger.info("HTTPS probes retry without certificate verification on TLS errors")

    yield

    app.state.response_cache.clear()


app = FastAPI(
    title="Portracker",
    description="Port discovery, reachability checks and port annotations",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(exc: PortrackerError) -> dict[str, str | None]:
    return {"error": exc.message, "details": exc.details}


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = first.get("loc") or ()
    field = str(location[-1]) if location else None
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation failed",
            "details": first.get("msg", "Invalid request"),
            "field": field,
        },
    )


@app.exception_handler(IdentityValidationError)
async def identity_validation_handler(
    request: Request, exc: IdentityValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={**_error_body(exc), "field": exc.field},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_body(exc))


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=_error_body(exc))


@app.exception_handler(UnsupportedOperationError)
async def unsupported_handler(request: Request, exc: UnsupportedOperationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_501_NOT_IMPLEMENTED, content=_error_body(exc))


@app.exception_handler(PeerUnavailableError)
async def peer_unavailable_handler(request: Request, exc: PeerUnavailableError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


@app.exception_handler(PortrackerError)
async def portracker_error_handler(request: Request, exc: PortrackerError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc.message}: {exc.details}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_body(exc)
    )


# Register routers
app.include_router(ports.router)
app.include_router(ping.router)
app.include_router(notes.router)
app.include_router(ignores.router)
app.include_router(custom_service_names.router)
app.include_router(servers.router)
app.include_router(containers.router)
app.include_router(system.router)

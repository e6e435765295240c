"""FastAPI dependencies for database access and shared application state."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portracker.collectors import BaseCollector, DockerCollector
from portracker.core.cache import TTLCache
from portracker.core.database import get_db
from portracker.core.errors import NotFoundError
from portracker.models.server import Server
from portracker.services import servers as servers_service
from portracker.services.reachability import ReachabilityProbe


def get_response_cache(request: Request) -> TTLCache:
    """The process-wide response cache created at startup."""
    return request.app.state.response_cache


def get_collectors(request: Request) -> list[BaseCollector]:
    """Collectors whose output makes up GET /api/ports, in merge order."""
    return request.app.state.collectors


def get_docker_collector(request: Request) -> DockerCollector:
    return request.app.state.docker_collector


def get_probe(request: Request) -> ReachabilityProbe:
    return request.app.state.probe


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
ResponseCacheDep = Annotated[TTLCache, Depends(get_response_cache)]
CollectorsDep = Annotated[list[BaseCollector], Depends(get_collectors)]
DockerCollectorDep = Annotated[DockerCollector, Depends(get_docker_collector)]
ProbeDep = Annotated[ReachabilityProbe, Depends(get_probe)]


async def require_server(db: AsyncSession, server_id: str) -> Server:
    """Load a server or raise NotFoundError."""
    server = await servers_service.get_server_by_id(db, server_id)
    if server is None:
        raise NotFoundError("Server not found", details=f"No server with id '{server_id}'")
    return server

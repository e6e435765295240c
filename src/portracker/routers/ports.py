"""Local port listing router."""

import logging
from typing import Any

from fastapi import APIRouter, Query

from portracker.collectors.base import PortObservation
from portracker.core.cache import PORTS_CACHE_KEY
from portracker.core.config import settings
from portracker.core.deps import CollectorsDep, DbSession, ResponseCacheDep
from portracker.core.errors import CollectionError
from portracker.schemas.port import PortsResponse
from portracker.services.port_aggregation import aggregate_ports
from portracker.services.scan import collect_all_ports

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ports"])


@router.get("/ports", response_model=PortsResponse)
async def list_ports(
    cache: ResponseCacheDep,
    collectors: CollectorsDep,
    debug: bool = Query(False),
) -> PortsResponse:
    """Get the deduplicated open ports of this host and its containers.

    Responses are cached briefly; ``debug=true`` or DISABLE_CACHE bypasses the
    cache.
    """
    ttl_ms = settings.endpoint_cache_ports_ttl_ms
    use_cache = not debug and not settings.disable_cache

    if use_cache:
        cached = cache.get(PORTS_CACHE_KEY)
        if cached is not None:
            logger.debug("ports-endpoint cache hit local")
            return PortsResponse(cached=True, ttl_ms=ttl_ms, data=cached)
        logger.debug("ports-endpoint cache miss local")

    observations: list[PortObservation] = []
    for collector in collectors:
        try:
            observations.extend(await collector.get_ports())
        except Exception as e:
            logger.error(f"Collector '{collector.platform}' failed: {e}")
            raise CollectionError(str(e)) from e

    payload = [entry.to_dict() for entry in aggregate_ports(observations)]
    if use_cache:
        cache.set(PORTS_CACHE_KEY, payload, ttl_ms)
    return PortsResponse(cached=False, ttl_ms=ttl_ms, data=payload)


@router.get("/all-ports")
async def list_all_ports(
    db: DbSession,
    collectors: CollectorsDep,
) -> list[dict[str, Any]]:
    """Get one entry per registered server, with the local ports filled in."""
    return await collect_all_ports(db, collectors)

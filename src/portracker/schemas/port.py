"""Port listing and ping schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PortsResponse(BaseModel):
    """Aggregated local ports, with whether they came from the cache."""

    model_config = ConfigDict(populate_by_name=True)

    cached: bool
    ttl_ms: int = Field(serialization_alias="ttlMs")
    data: list[dict[str, Any]]


class PingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reachable: bool
    status: str
    color: str
    title: str
    protocol: str | None = None
    service_type: str = Field(serialization_alias="serviceType")
    service_name: str = Field(serialization_alias="serviceName")
    description: str | None = None

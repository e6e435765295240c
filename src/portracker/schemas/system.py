"""Health and version schemas."""

from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime_seconds: float
    database: str


class VersionResponse(BaseModel):
    version: str
    name: str
    description: str

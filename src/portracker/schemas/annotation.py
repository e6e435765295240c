"""Schemas for notes, ignores and custom service names."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, StrictBool, ValidationInfo, field_validator

from portracker.services.port_identity import PortIdentity

PORT_ERROR = "host_port is required and must be a valid port number (1-65535)"


class PortIdentityFields(BaseModel):
    """The port part of an annotation identity, shared by every request."""

    host_ip: str
    host_port: int
    protocol: Literal["tcp", "udp"]
    container_id: str | None = None
    internal: StrictBool | None = None

    @field_validator("host_ip")
    @classmethod
    def validate_host_ip(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("host_ip is required and must be a non-empty string")
        return v.strip()

    @field_validator("host_port", mode="before")
    @classmethod
    def validate_host_port(cls, v: Any) -> Any:
        if isinstance(v, bool) or v is None:
            raise ValueError(PORT_ERROR)
        return v

    @field_validator("host_port")
    @classmethod
    def validate_port_range(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(PORT_ERROR)
        return v

    @field_validator("container_id")
    @classmethod
    def validate_container_id(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("container_id must be a non-empty string when provided")
        return v.strip() if v is not None else None

    def to_identity(self, server_id: str) -> PortIdentity:
        return PortIdentity(
            server_id=server_id,
            host_ip=self.host_ip,
            host_port=self.host_port,
            protocol=self.protocol,
            container_id=self.container_id,
            internal=bool(self.internal),
        )


class ServerScopedRequest(PortIdentityFields):
    server_id: str

    @field_validator("server_id")
    @classmethod
    def validate_server_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("server_id is required and must be a non-empty string")
        return v.strip()

    def identity(self) -> PortIdentity:
        return self.to_identity(self.server_id)


class NoteRequest(ServerScopedRequest):
    """Request schema for saving a note. An empty note removes it."""

    note: str | None = Field(default="", max_length=10000)


class IgnoreRequest(ServerScopedRequest):
    """Request schema for toggling the ignored flag of a port."""

    ignored: StrictBool


class CustomServiceNameRequest(ServerScopedRequest):
    """Request schema for renaming a service."""

    custom_name: str = Field(max_length=255)
    original_name: str | None = Field(default=None, max_length=255)

    @field_validator("custom_name")
    @classmethod
    def validate_custom_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("custom_name is required and must be a non-empty string")
        return v.strip()


class CustomServiceNameDeleteRequest(ServerScopedRequest):
    """Request schema for removing a custom service name."""


class NoteBatchOperation(PortIdentityFields):
    """One item of a note batch."""

    action: Literal["set", "delete"]
    note: str | None = Field(default=None, max_length=10000)


class CustomServiceNameBatchOperation(PortIdentityFields):
    """One item of a custom service name batch."""

    action: Literal["set", "delete"]
    custom_name: str | None = Field(default=None, max_length=255, validate_default=True)
    original_name: str | None = Field(default=None, max_length=255)

    @field_validator("custom_name")
    @classmethod
    def require_name_for_set(cls, v: str | None, info: ValidationInfo) -> str | None:
        if info.data.get("action") == "set" and (v is None or not v.strip()):
            raise ValueError('custom_name is required for "set" action')
        return v.strip() if v is not None else None


class NoteBatchRequest(BaseModel):
    """Items are validated one by one so a bad item only fails itself."""

    server_id: str = Field(min_length=1)
    operations: list[Any]


class CustomServiceNameBatchRequest(BaseModel):
    server_id: str = Field(min_length=1)
    operations: list[Any] = Field(min_length=1)


class AnnotationResponse(BaseModel):
    """Identity columns of a stored annotation row."""

    host_ip: str
    host_port: int
    protocol: str
    container_id: str | None = None
    internal: bool

    model_config = {"from_attributes": True}

    @field_validator("container_id", mode="before")
    @classmethod
    def empty_container_as_none(cls, v: str | None) -> str | None:
        return v or None


class NoteResponse(AnnotationResponse):
    note: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class IgnoreResponse(AnnotationResponse):
    ignored: bool = True
    created_at: datetime | None = None


class CustomServiceNameResponse(AnnotationResponse):
    custom_name: str
    original_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AnnotationSaveResponse(BaseModel):
    success: bool = True
    message: str
    action: str | None = None


class BatchResponse(BaseModel):
    success: bool = True
    results: list[dict[str, Any]]

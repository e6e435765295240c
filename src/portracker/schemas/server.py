"""Server registry schemas."""

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator


class ServerSaveRequest(BaseModel):
    """Request schema for adding or updating a server."""

    id: str = Field(min_length=1, max_length=255)
    label: str = Field(min_length=1, max_length=255)
    url: str | None = None
    type: Literal["local", "peer"] = "peer"
    parent_id: str | None = Field(
        default=None, validation_alias=AliasChoices("parent_id", "parentId")
    )
    platform_type: str | None = None
    unreachable: bool = False

    @field_validator("id", "label")
    @classmethod
    def strip_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must be a non-empty string")
        return v.strip()

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        cleaned = v.strip()
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return cleaned.rstrip("/")


class ServerResponse(BaseModel):
    id: str
    label: str
    url: str | None = None
    type: str
    parent_id: str | None = None
    platform_type: str
    unreachable: bool

    model_config = {"from_attributes": True}


class ServerSaveResponse(BaseModel):
    message: str
    id: str


class ServerDeleteResponse(BaseModel):
    success: bool = True
    message: str

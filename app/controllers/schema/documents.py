"""Request/response schemas for /documents."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DocumentMetadata(BaseModel):
    """Well-known metadata keys are indexed as keywords; extra keys are stored as-is."""

    model_config = ConfigDict(extra="allow")

    author: str | None = Field(default=None, max_length=200)
    type: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)


class DocumentCreateRequest(BaseModel):
    """POST /documents body. The tenant comes from the X-Tenant-Id header, never from the body."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(
        default=None, min_length=1, max_length=256, description="Document id; generated when omitted. Reusing an id replaces the document"
    )
    title: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1, max_length=100000)
    tags: list[str] = Field(default_factory=list, max_length=100)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)


class DocumentCreatedResponse(BaseModel):
    """POST /documents response body."""

    id: str
    tenant_id: str
    status: Literal["indexed"] = "indexed"


class DocumentDeletedResponse(BaseModel):
    """DELETE /documents/{id} response body. Deleting a missing id is not an error."""

    id: str
    tenant_id: str
    status: Literal["deleted", "not_found"]

"""
NoteGenius Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the API contract between frontend and backend.
Why:   Strict input validation, automatic serialization, and OpenAPI doc generation.
How:   FastAPI uses these models to validate request bodies, serialize responses,
       and generate Swagger/OpenAPI documentation automatically.

Design Decision:
    Schemas are separate from SQLAlchemy models because the API never accepts
    `user_id`, `created_at` or `updated_at` from clients: the owner comes from
    the session and the timestamps from the server.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, StrictStr, ValidationInfo, field_validator, model_validator
from pydantic_core import PydanticCustomError


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


def _reject_blank(value: Optional[str], field: str) -> Optional[str]:
    if value is None or not value.strip():
        raise PydanticCustomError("blank_text", "{field} is required", {"field": field.capitalize()})
    return value


class NoteCreate(BaseModel):
    """
    What:  Body of POST /api/notes.
    Rules: title and content are required and not blank. A summary may be
           supplied when the client generated one before saving.
    """
    title: str = Field(min_length=1, description="Note title (required)")
    content: str = Field(min_length=1, description="Note body (required)")
    summary: Optional[str] = Field(default=None, description="Optional pre-generated summary")

    @field_validator("title", "content")
    @classmethod
    def reject_blank(cls, value: str, info: ValidationInfo) -> str:
        return _reject_blank(value, info.field_name)


class NoteUpdate(BaseModel):
    """
    What:  Body of PATCH /api/notes/{id}. Only provided fields change.
    Rules: a provided title/content must not be blank or null; at least one field
           must be present.
    """
    title: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = Field(default=None, min_length=1)
    summary: Optional[str] = Field(default=None)

    @field_validator("title", "content")
    @classmethod
    def reject_blank(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        # Runs only for fields the client sent, so an explicit null is rejected too
        return _reject_blank(value, info.field_name)

    @model_validator(mode="after")
    def require_any_field(self) -> "NoteUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one of title, content or summary must be provided")
        return self

    def changes(self) -> dict:
        """Fields explicitly sent by the client (so `summary: null` clears it)."""
        return self.model_dump(exclude_unset=True)


class SummarizeRequest(BaseModel):
    """
    What:  Body of POST /api/summarize.
    Why StrictStr: `{"text": 42}` must be rejected, not coerced to "42".
    """
    text: StrictStr = Field(min_length=1, description="Text to summarize")


class SummaryAttach(BaseModel):
    """Body of PUT /api/notes/{id}/summary: a summary produced elsewhere."""
    summary: str = Field(min_length=1)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    """Full representation of a note, as returned by every note endpoint."""
    id: uuid.UUID = Field(description="Unique note identifier (UUID)")
    title: str
    content: str
    summary: Optional[str] = Field(default=None, description="AI summary, if attached")
    created_at: datetime = Field(description="When the note was created (UTC ISO 8601)")
    updated_at: datetime = Field(description="Last mutation time (UTC ISO 8601)")
    user_id: uuid.UUID = Field(description="Owner's user id")

    model_config = {"from_attributes": True}


class NoteListResponse(BaseModel):
    """
    What:  Response of GET /api/notes.
    Order: updated_at descending (most recently edited first).
    """
    notes: List[NoteResponse] = Field(description="The caller's notes")
    total_count: int = Field(description="Number of notes returned")


class SummarizeResponse(BaseModel):
    summary: str = Field(description="Trimmed summary text")


class SummarizeErrorResponse(BaseModel):
    """Error shape of /api/summarize: a single human-readable string."""
    error: str


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors except
           /api/summarize.

    Example:
        {
            "error": "not_found",
            "message": "note with ID '...' was not found",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /health for monitoring and load balancer health checks.
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    gemini: str = Field(description="Gemini status: available, unavailable, unconfigured, circuit_open")
    identity_provider: str = Field(description="Identity provider: configured, unconfigured")
    uptime_seconds: float = Field(description="Seconds since service started")

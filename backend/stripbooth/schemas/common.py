"""
StripBooth Backend — Shared Response Schemas
=============================================

What:  Envelopes reused across resources: the error body, health status,
       counts and delete acknowledgements.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error body returned by every exception handler.

    Example:
        {
            "error": "invalid_transition",
            "message": "Cannot move print template from 'filling' to 'downloaded'",
            "details": {"entity": "print template", "current": "filling", "target": "downloaded"},
            "request_id": "1f0c2a9b"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    storage: str = Field(description="Blob store root: writable, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")


class CountResponse(BaseModel):
    count: int


class DeleteResponse(BaseModel):
    ok: bool = True
    id: uuid.UUID

"""
dineAR Backend — Shared Response Schemas
=========================================

What:  Envelope, error and health models shared by every router.
Why:   Clients parse one success shape and one error shape for the whole API.

Envelope:
    Success: {"success": true, "data": {...}}
    Error:   {"success": false, "error": "...", "details": [...]}

    Error bodies deliberately carry no request id or timestamp: two identical
    failures must produce byte-identical bodies (login enumeration hardening).
    The request id is returned in the X-Request-ID header instead.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class FieldViolation(BaseModel):
    """One failed validation rule, tagged with the offending field."""
    field: str = Field(description="Name of the request field that failed")
    message: str = Field(description="Human-readable reason")


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "success": false,
            "error": "Validation failed",
            "details": [{"field": "email", "message": "Please provide a valid email address"}]
        }
    """
    success: bool = Field(default=False)
    error: str = Field(description="Human-readable error description")
    details: Optional[List[FieldViolation]] = Field(
        default=None, description="Field-level violations (validation errors only)"
    )
    retry_after: Optional[int] = Field(
        default=None, description="Seconds until the rate-limit window resets (429 only)"
    )


class MessageResponse(BaseModel):
    """Success response with no payload, e.g. after a delete."""
    success: bool = Field(default=True)
    message: str


class Pagination(BaseModel):
    """
    Offset pagination metadata.

    pages = ceil(total / limit); 0 when there are no items.
    """
    page: int = Field(description="1-based page number that was served")
    limit: int = Field(description="Page size after server-side clamping")
    total: int = Field(description="Total number of items across all pages")
    pages: int = Field(description="Total number of pages")


class HealthResponse(BaseModel):
    """
    Liveness probe payload. Always served with HTTP 200 while the process is up;
    `database` reports connectivity for monitoring without failing the probe.
    """
    success: bool = Field(default=True)
    status: str = Field(description="Overall service status: healthy or degraded")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")

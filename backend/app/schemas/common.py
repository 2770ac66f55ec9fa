"""
PetMatch Backend - Shared Response Schemas
==========================================

What:  Response models shared by every router: the error envelope and the
       health check payload.
Who:   main.py exception handlers (ErrorResponse) and routes/health.py.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "invalid_transition", "forbidden")
        message: Human-readable description for display to users
        details: Offending field or state (e.g., current and requested status)
        request_id: Correlation ID for tracing this error in server logs

    Example:
        {
            "error": "invalid_transition",
            "message": "Cannot move application from 'submitted' to 'adoption-completed'",
            "details": {"current_status": "submitted", "requested_status": "adoption-completed",
                        "allowed": ["on-hold", "rejected", "under-review", "withdrawn"]},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health for monitoring and load balancer health checks."""
    status: str = Field(description="Overall service status: healthy or unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")

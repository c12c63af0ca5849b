"""
Common API models used across different endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class APIError(BaseModel):
    """Standard error response format."""
    error: str = Field(..., description="Error message")
    error_code: str = Field(..., description="Machine-readable error code")
    details: Optional[str] = Field(None, description="Underlying error detail (non-production only)")
    timestamp: datetime = Field(default_factory=_utcnow)


class MemorySnapshot(BaseModel):
    rss: int = Field(..., description="Resident set size in bytes")
    vms: int = Field(..., description="Virtual memory size in bytes")
    percent: float = Field(..., description="Share of system memory used by this process")


class HealthStatus(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    message: str = Field(..., description="Human-readable status line")
    timestamp: datetime = Field(default_factory=_utcnow)
    uptime: float = Field(..., description="Uptime in seconds")
    memory: MemorySnapshot
    environment: str = Field(..., description="Deployment mode")
    active_sessions: int = Field(..., description="Requests currently holding temp files")

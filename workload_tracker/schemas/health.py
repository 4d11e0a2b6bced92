"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class LivenessResponse(BaseModel):
    """Process liveness; does not touch the database."""

    status: Literal["ok"] = Field(default="ok", description="Service status")
    timestamp: str
    uptime: float = Field(description="Seconds since the application started")
    environment: str = Field(description="Current app environment (e.g. dev, prod)")


class DatabaseHealthResponse(BaseModel):
    """Result of Database.health_check()."""

    status: Literal["healthy", "unhealthy"]
    database: Literal["sqlite", "mysql"] = Field(description="Backend currently in use")
    connected: bool
    timestamp: str
    error: str | None = None

"""Health check API schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health (liveness)."""

    status: str = Field(default="ok", description="Service status")
    backend: str | None = Field(default=None, description="Storage backend in use")
    workers_running: bool = Field(
        default=False, description="Whether the automation background workers are running"
    )

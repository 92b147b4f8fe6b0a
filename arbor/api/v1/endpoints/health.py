"""Health check endpoint. Used for liveness checks."""

from fastapi import APIRouter, Request

from arbor.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Return ok plus the backend and whether automation workers are running."""
    runtime = getattr(request.app.state, "automation", None)
    if runtime is None:
        return HealthResponse()
    return HealthResponse(
        backend=runtime.settings.database_backend,
        workers_running=runtime.running,
    )

"""API v1 router."""

from fastapi import APIRouter

from arbor.api.v1.endpoints import automation_logs, events, health, workflows

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(events.router, prefix="/events", tags=["events"])
api_router.include_router(workflows.router, prefix="/workflows", tags=["workflows"])
api_router.include_router(
    automation_logs.router, prefix="/automation-logs", tags=["automation-logs"]
)

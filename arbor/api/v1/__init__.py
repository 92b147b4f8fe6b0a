"""API v1: admin routes for events, workflows and execution history."""

from arbor.api.v1.router import api_router

__all__ = ["api_router"]

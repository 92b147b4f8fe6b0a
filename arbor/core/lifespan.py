"""Application lifespan: startup and shutdown.

Wiring only: shared HTTP client, automation runtime and its background
workers, telemetry, DB engine dispose.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from arbor.core.config import get_settings
from arbor.core.runtime import build_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: telemetry (if enabled), shared HTTP client, automation
    runtime, background workers (if automation_enabled). Shutdown order:
    workers stop (queued events are recorded), HTTP client close, telemetry
    shutdown, SQL engine dispose.
    """
    settings = get_settings()

    # ---- Startup ----
    if settings.telemetry_enabled:
        from arbor.shared.telemetry.telemetry import TelemetryConfig, set_telemetry

        telemetry = TelemetryConfig(
            service_name=settings.app_name,
            service_version=settings.app_version,
            enabled=True,
            environment=settings.telemetry_environment,
        )
        telemetry.setup_telemetry(
            exporter_type=settings.telemetry_exporter,
            otlp_endpoint=settings.telemetry_otlp_endpoint,
            sample_rate=settings.telemetry_sample_rate,
        )
        set_telemetry(telemetry)
        telemetry.instrument_fastapi(app)
        telemetry.instrument_logging()
        logger.info("Telemetry initialized")

    # Shared HTTP client for webhook actions (connection reuse).
    app.state.http_client = httpx.AsyncClient(timeout=settings.webhook_timeout_seconds)
    runtime = build_runtime(settings, http_client=app.state.http_client)
    app.state.automation = runtime

    if settings.database_backend == "postgres" and settings.telemetry_enabled:
        from arbor.infrastructure.persistence import database
        from arbor.shared.telemetry.telemetry import get_telemetry

        telemetry_instance = get_telemetry()
        if telemetry_instance is not None and database.engine is not None:
            telemetry_instance.instrument_sqlalchemy(database.engine)

    if settings.automation_enabled:
        runtime.start()
    else:
        logger.info("Automation workers disabled; events are recorded but not processed")

    yield

    # ---- Shutdown ----
    await runtime.stop()

    if getattr(app.state, "http_client", None) is not None:
        await app.state.http_client.aclose()
        app.state.http_client = None
        logger.info("HTTP client closed")

    from arbor.shared.telemetry.telemetry import get_telemetry, set_telemetry

    telemetry_instance = get_telemetry()
    if telemetry_instance is not None:
        telemetry_instance.shutdown()
        set_telemetry(None)
        logger.info("Telemetry shutdown complete")

    if settings.database_backend == "postgres":
        from arbor.infrastructure.persistence.database import dispose_engine

        await dispose_engine()

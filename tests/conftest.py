"""Pytest configuration and fixtures for arbor.

Unit tests get a memory-backed AutomationRuntime with a controllable clock.
HTTP tests run create_app() over ASGITransport; the transport does not run
the lifespan, so the client fixture installs its own runtime on app.state
and background workers stay stopped (tests drive processing explicitly).
"""

import os
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

os.environ.setdefault("DATABASE_BACKEND", "memory")

from arbor.application.dtos.workflow import ActionSpec, TriggerSpec, WorkflowCreate  # noqa: E402
from arbor.core.config import Settings, get_settings  # noqa: E402
from arbor.core.limiter import limiter  # noqa: E402
from arbor.core.runtime import AutomationRuntime, build_runtime  # noqa: E402
from arbor.domain.entities.workflow import WorkflowEntity  # noqa: E402
from arbor.main import create_app  # noqa: E402


class FakeClock:
    """Callable clock for components that take clock=..."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture(autouse=True)
def _reset_rate_limits() -> None:
    """SlowAPI keeps counters in a module-level limiter; start every test clean."""
    limiter.reset()


@pytest.fixture
def settings() -> Settings:
    get_settings.cache_clear()
    return Settings(
        database_backend="memory",
        automation_enabled=False,
        event_batch_size=5,
        event_max_attempts=5,
        emitter_queue_size=100,
        emitter_dedupe_window_seconds=300,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 10, 9, 0, tzinfo=UTC))


@pytest.fixture
def runtime(settings: Settings, clock: FakeClock) -> AutomationRuntime:
    """Memory-backed engine on a fake clock; workers are not started."""
    return build_runtime(settings, clock=clock)


@pytest.fixture
def make_workflow(
    runtime: AutomationRuntime,
) -> Callable[..., Awaitable[WorkflowEntity]]:
    """Create a workflow through WorkflowService with one trigger.

    make_workflow(event_type, conditions=..., actions=[ActionSpec...], **fields)
    """

    async def _make(
        event_type: str = "invoice_paid",
        *,
        conditions: list[dict[str, Any]] | None = None,
        actions: list[ActionSpec] | None = None,
        **fields: Any,
    ) -> WorkflowEntity:
        if actions is None:
            actions = [ActionSpec(action_type="create_task", config={"title": "Follow up"})]
        data = WorkflowCreate(
            name=fields.pop("name", f"On {event_type}"),
            triggers=[TriggerSpec(trigger_type=event_type, conditions=conditions or [])],
            actions=[replace(spec, action_order=i) for i, spec in enumerate(actions)],
            **fields,
        )
        return await runtime.workflow_service.create_workflow(data)

    return _make


@pytest.fixture
def app_runtime(settings: Settings) -> AutomationRuntime:
    """Runtime served by the HTTP client fixture (real clock)."""
    return build_runtime(settings)


@pytest.fixture
async def client(app_runtime: AutomationRuntime) -> AsyncIterator[AsyncClient]:
    """Async HTTP client against a fresh FastAPI app (ASGI)."""
    app = create_app()
    app.state.automation = app_runtime
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Session factory for SQL store integration tests.

    Requires DATABASE_BACKEND=postgres, DATABASE_URL and a migrated schema
    (alembic upgrade head). Skips when Postgres is not configured. Mark such
    tests with @pytest.mark.requires_db; run without DB via
    pytest -m 'not requires_db'.
    """
    from arbor.infrastructure.persistence.database import (
        dispose_engine,
        get_session_factory,
    )
    from arbor.domain.exceptions import SqlNotConfiguredException

    get_settings.cache_clear()
    try:
        factory = get_session_factory()
    except (SqlNotConfiguredException, ValueError):
        pytest.skip(
            "Postgres not configured: set DATABASE_BACKEND=postgres and DATABASE_URL, "
            "then run: alembic upgrade head"
        )
    yield factory
    await dispose_engine()

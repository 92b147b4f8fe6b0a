"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. DATABASE_URL is validated at load time when the
postgres backend is selected; the memory backend needs no configuration.
"""

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from arbor.shared.enums import OverflowPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment and .env."""

    # App
    app_name: str = "arbor"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database: "postgres" (SQLAlchemy + Alembic) or "memory" (process-local, dev/tests)
    database_backend: str = "memory"
    database_url: str = ""
    database_echo: bool = False
    # Optional pool/driver overrides (None = use defaults in database.py)
    db_pool_size: int | None = None
    db_max_overflow: int | None = None
    db_command_timeout: int | None = None

    # CORS
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"

    # Request / middleware
    request_id_header: str = "X-Request-ID"
    correlation_id_header: str = "X-Correlation-ID"

    # Automation background workers (processor loop, emitter drain, delayed actions, schedules)
    automation_enabled: bool = True
    automation_dry_run: bool = False
    company_name: str = "Our Tree Service"

    # Event processing
    event_processor_interval_seconds: float = 5.0
    event_batch_size: int = 5
    event_max_attempts: int = 5
    event_retry_base_seconds: int = 60
    event_retry_max_seconds: int = 960
    event_visibility_timeout_seconds: int = 300

    # Emitter
    emitter_queue_size: int = 1000
    emitter_overflow_policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST
    # Same event type + entity id inside this window is emitted once (0 disables).
    emitter_dedupe_window_seconds: int = 300

    # Delayed actions, schedule triggers and action execution
    scheduled_action_poll_seconds: float = 30.0
    scheduled_action_batch_size: int = 10
    schedule_trigger_poll_seconds: float = 60.0
    schedule_trigger_batch_size: int = 10
    action_timeout_seconds: float = 30.0
    webhook_timeout_seconds: float = 10.0

    # OpenTelemetry
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = 1.0
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_backend_and_limits(self) -> "Settings":
        """Validate backend selection and numeric bounds.

        - Postgres: DATABASE_URL required.
        - Memory: nothing required (state is lost on restart).
        """
        if self.database_backend == "postgres":
            if not self.database_url:
                raise ValueError(
                    "DATABASE_URL is required when database_backend is 'postgres'. "
                    "Set in environment or .env file."
                )
        elif self.database_backend != "memory":
            raise ValueError(
                f"database_backend must be 'postgres' or 'memory', got: {self.database_backend!r}"
            )
        if self.event_max_attempts < 1:
            raise ValueError("EVENT_MAX_ATTEMPTS must be at least 1")
        if min(
            self.event_batch_size,
            self.scheduled_action_batch_size,
            self.schedule_trigger_batch_size,
        ) < 1:
            raise ValueError("Batch sizes must be at least 1")
        if self.emitter_queue_size < 1:
            raise ValueError("EMITTER_QUEUE_SIZE must be at least 1")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()

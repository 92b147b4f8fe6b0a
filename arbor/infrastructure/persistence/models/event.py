"""DomainEvent ORM model. Table: domain_event. Never deleted."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from arbor.infrastructure.persistence.database import Base
from arbor.infrastructure.persistence.models.mixins import (
    CuidMixin,
    TimestampMixin,
    status_check,
)
from arbor.shared.enums import EventStatus


class DomainEvent(CuidMixin, TimestampMixin, Base):
    """Business event awaiting (or done with) automation processing."""

    __tablename__ = "domain_event"

    event_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    entity_type: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=EventStatus.PENDING.value,
        server_default=EventStatus.PENDING.value,
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    locked_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_domain_event_status_created", "status", "created_at"),
        Index("ix_domain_event_entity", "entity_type", "entity_id"),
        status_check("status", EventStatus.values(), "domain_event_status_check"),
    )

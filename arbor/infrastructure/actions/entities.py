"""Entity update actions: job status, lead stage, invoice status."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arbor.application.dtos.execution import ActionContext
from arbor.application.interfaces.services import IEntityMutator
from arbor.domain.entities.event import entity_id_from_payload
from arbor.domain.exceptions import ActionConfigError, ActionError
from arbor.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EntityTable:
    """Where an entity type lives and which of its columns actions may set."""

    table: str
    columns: frozenset[str]


DEFAULT_ENTITY_TABLES: dict[str, EntityTable] = {
    "job": EntityTable("jobs", frozenset({"status"})),
    "lead": EntityTable("leads", frozenset({"stage"})),
    "invoice": EntityTable("invoices", frozenset({"status"})),
}


class InMemoryEntityMutator:
    """IEntityMutator for the memory backend. Every write is recorded (upsert)."""

    def __init__(self) -> None:
        self.entities: dict[tuple[str, str], dict[str, Any]] = {}

    async def set_field(
        self, entity_type: str, entity_id: str, field: str, value: Any
    ) -> bool:
        self.entities.setdefault((entity_type, entity_id), {})[field] = value
        logger.info("Set %s %s.%s = %r", entity_type, entity_id, field, value)
        return True


class SqlEntityMutator:
    """IEntityMutator over the business tables. Only whitelisted table/column pairs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tables: dict[str, EntityTable] | None = None,
    ) -> None:
        self._sessions = session_factory
        self._tables = tables or DEFAULT_ENTITY_TABLES

    async def set_field(
        self, entity_type: str, entity_id: str, field: str, value: Any
    ) -> bool:
        target = self._tables.get(entity_type)
        if target is None or field not in target.columns:
            raise ActionConfigError(f"Cannot update {entity_type}.{field}")
        stmt = text(
            f"UPDATE {target.table} SET {field} = :value, updated_at = now() WHERE id = :id"
        )
        async with self._sessions.begin() as db:
            result = await db.execute(stmt, {"value": value, "id": entity_id})
            return bool(result.rowcount)


class UpdateEntityFieldAction:
    """Sets one field of the triggering entity from a config key.

    The entity id is the trigger's entity_id, falling back to the payload's id.
    """

    def __init__(
        self,
        mutator: IEntityMutator,
        *,
        action_type: str,
        entity_type: str,
        field: str,
        config_key: str,
    ) -> None:
        self._mutator = mutator
        self._action_type = action_type
        self._entity_type = entity_type
        self._field = field
        self._config_key = config_key

    async def __call__(
        self, config: dict[str, Any], context: ActionContext
    ) -> dict[str, Any]:
        value = config.get(self._config_key)
        if value is None or value == "":
            raise ActionConfigError(f"{self._config_key} is required", self._action_type)
        entity_id = context.trigger.entity_id or entity_id_from_payload(
            context.trigger.payload
        )
        if not entity_id:
            raise ActionConfigError(
                f"{self._entity_type.capitalize()} ID not found in context",
                self._action_type,
            )
        updated = await self._mutator.set_field(
            self._entity_type, entity_id, self._field, value
        )
        if not updated:
            raise ActionError(f"{self._entity_type} {entity_id} not found", self._action_type)
        logger.info(
            "Execution %s: %s %s %s -> %r",
            context.execution_id,
            self._entity_type,
            entity_id,
            self._field,
            value,
        )
        return {
            "entity_type": self._entity_type,
            "entity_id": entity_id,
            "field": self._field,
            "value": value,
        }

"""Execution history API: logs, per-execution detail and aggregate stats."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from arbor.api.v1.dependencies import get_log_service
from arbor.application.dtos.execution import LogQuery
from arbor.application.use_cases.automation_logs import AutomationLogService
from arbor.schemas.automation_log import (
    AutomationStatsResponse,
    ExecutionDetailResponse,
    ExecutionLogListResponse,
    ExecutionLogResponse,
)

router = APIRouter()

LogServiceDep = Annotated[AutomationLogService, Depends(get_log_service)]


@router.get("", response_model=ExecutionLogListResponse)
async def list_logs(
    service: LogServiceDep,
    workflow_id: str | None = Query(None),
    status: str | None = Query(None, description="completed, failed or skipped"),
    action_type: str | None = Query(None),
    entity_type: str | None = Query(None),
    entity_id: str | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
):
    """Execution logs, newest first."""
    logs, total = await service.list_logs(
        LogQuery(
            workflow_id=workflow_id,
            status=status,
            action_type=action_type,
            entity_type=entity_type,
            entity_id=entity_id,
            start_date=start_date,
            end_date=end_date,
            skip=skip,
            limit=limit,
        )
    )
    return ExecutionLogListResponse(
        items=[ExecutionLogResponse.model_validate(log) for log in logs],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/stats", response_model=AutomationStatsResponse)
async def get_stats(
    service: LogServiceDep,
    workflow_id: str | None = Query(None),
    days: int = Query(30),
):
    stats = await service.stats(days=days, workflow_id=workflow_id)
    return AutomationStatsResponse.model_validate(stats)


@router.get("/{execution_id}", response_model=ExecutionDetailResponse)
async def get_execution(execution_id: str, service: LogServiceDep):
    """One execution with its logs in order and the status derived from them."""
    detail = await service.get_execution(execution_id)
    record = detail.record
    first = detail.logs[0] if detail.logs else None
    return ExecutionDetailResponse(
        execution_id=detail.execution_id,
        workflow_id=detail.workflow_id,
        status=detail.status,
        trigger_type=record.trigger_type if record else (first.trigger_type if first else None),
        event_id=record.event_id if record else None,
        entity_type=record.entity_type if record else (first.entity_type if first else None),
        entity_id=record.entity_id if record else (first.entity_id if first else None),
        started_at=record.started_at if record else (first.started_at if first else None),
        finished_at=record.finished_at if record else None,
        logs=[ExecutionLogResponse.model_validate(log) for log in detail.logs],
    )

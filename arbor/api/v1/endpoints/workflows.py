"""Workflow API: thin routes delegating to WorkflowService."""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, Request

from arbor.api.v1.dependencies import get_workflow_service
from arbor.application.dtos.workflow import WorkflowQuery
from arbor.application.use_cases.workflows import WorkflowService
from arbor.core.limiter import limit_writes
from arbor.domain.entities.workflow import WorkflowEntity
from arbor.schemas.automation_log import ExecutionLogResponse
from arbor.schemas.workflow import (
    ActionResponse,
    ExecuteWorkflowRequest,
    ExecutionResultResponse,
    FromTemplateRequest,
    TriggerResponse,
    WorkflowCreateRequest,
    WorkflowDetailResponse,
    WorkflowListResponse,
    WorkflowResponse,
    WorkflowUpdateRequest,
)

router = APIRouter()

ServiceDep = Annotated[WorkflowService, Depends(get_workflow_service)]


def to_response(workflow: WorkflowEntity) -> WorkflowResponse:
    """WorkflowResponse with triggers and actions in execution order."""
    response = WorkflowResponse.model_validate(workflow)
    response.triggers = [TriggerResponse.model_validate(t) for t in workflow.ordered_triggers()]
    response.actions = [ActionResponse.model_validate(a) for a in workflow.ordered_actions()]
    return response


@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    service: ServiceDep,
    status: str | None = Query(None, description="active or inactive"),
    search: str | None = Query(None, max_length=255),
    include_templates: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
):
    """List non-deleted workflows."""
    workflows, total = await service.list_workflows(
        WorkflowQuery(
            status=status,
            search=search,
            include_templates=include_templates,
            skip=skip,
            limit=limit,
        )
    )
    return WorkflowListResponse(
        items=[to_response(w) for w in workflows], total=total, skip=skip, limit=limit
    )


@router.post("", response_model=WorkflowResponse, status_code=201)
@limit_writes
async def create_workflow(request: Request, body: WorkflowCreateRequest, service: ServiceDep):
    """Create a workflow with its triggers and actions."""
    workflow = await service.create_workflow(body.to_dto())
    return to_response(workflow)


@router.get("/templates", response_model=dict[str, list[WorkflowResponse]])
async def list_templates(
    service: ServiceDep,
    category: str | None = Query(None, max_length=128),
):
    """Templates grouped by category."""
    grouped = await service.list_templates(category)
    return {name: [to_response(t) for t in items] for name, items in grouped.items()}


@router.post(
    "/from-template/{template_id}", response_model=WorkflowResponse, status_code=201
)
@limit_writes
async def create_from_template(
    request: Request,
    template_id: str,
    service: ServiceDep,
    body: Annotated[FromTemplateRequest | None, Body()] = None,
):
    """Clone a template into a new active workflow."""
    overrides = body or FromTemplateRequest()
    workflow = await service.create_from_template(
        template_id, name=overrides.name, description=overrides.description
    )
    return to_response(workflow)


@router.get("/{workflow_id}", response_model=WorkflowDetailResponse)
async def get_workflow(workflow_id: str, service: ServiceDep):
    """Workflow with triggers, actions and its most recent logs."""
    workflow, logs = await service.get_workflow_with_logs(workflow_id)
    return WorkflowDetailResponse(
        **to_response(workflow).model_dump(),
        recent_logs=[ExecutionLogResponse.model_validate(log) for log in logs],
    )


@router.put("/{workflow_id}", response_model=WorkflowResponse)
@limit_writes
async def update_workflow(
    request: Request,
    workflow_id: str,
    body: WorkflowUpdateRequest,
    service: ServiceDep,
):
    """Partial update; triggers/actions, when given, replace the existing sets."""
    workflow = await service.update_workflow(workflow_id, body.to_dto())
    return to_response(workflow)


@router.delete("/{workflow_id}", status_code=204)
@limit_writes
async def delete_workflow(request: Request, workflow_id: str, service: ServiceDep):
    """Soft delete. Execution history is kept."""
    await service.delete_workflow(workflow_id)


@router.post("/{workflow_id}/toggle", response_model=WorkflowResponse)
@limit_writes
async def toggle_workflow(request: Request, workflow_id: str, service: ServiceDep):
    """Flip is_active."""
    workflow = await service.toggle_workflow(workflow_id)
    return to_response(workflow)


@router.post("/{workflow_id}/execute", response_model=ExecutionResultResponse)
@limit_writes
async def execute_workflow(
    request: Request,
    workflow_id: str,
    service: ServiceDep,
    body: Annotated[ExecuteWorkflowRequest | None, Body()] = None,
):
    """Run the workflow now for an entity. Rate limits and cooldown still apply."""
    run = body or ExecuteWorkflowRequest()
    result = await service.execute_manually(
        workflow_id,
        entity_type=run.entity_type,
        entity_id=run.entity_id,
        entity_data=run.entity_data,
        dry_run=run.dry_run,
    )
    return ExecutionResultResponse.model_validate(result)

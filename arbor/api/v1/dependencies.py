"""Presentation-layer dependency injection.

Routes depend on the automation runtime that the lifespan stores on
app.state.automation (see arbor.core.runtime). Nothing is constructed per
request; each dependency hands out one long-lived component.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from arbor.application.use_cases.automation_logs import AutomationLogService
from arbor.application.use_cases.events import EventEmitter, EventProcessor
from arbor.application.use_cases.workflows import WorkflowService
from arbor.core.runtime import AutomationRuntime


def get_runtime(request: Request) -> AutomationRuntime:
    """Return the process automation runtime (503 before startup completes)."""
    runtime = getattr(request.app.state, "automation", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Automation runtime not initialized")
    return runtime


RuntimeDep = Annotated[AutomationRuntime, Depends(get_runtime)]


def get_event_emitter(runtime: RuntimeDep) -> EventEmitter:
    """Emitter for business operations: emitter.emit(event_type, payload)."""
    return runtime.emitter


def get_event_processor(runtime: RuntimeDep) -> EventProcessor:
    return runtime.processor


def get_workflow_service(runtime: RuntimeDep) -> WorkflowService:
    return runtime.workflow_service


def get_log_service(runtime: RuntimeDep) -> AutomationLogService:
    return runtime.log_service

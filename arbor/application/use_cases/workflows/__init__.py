"""Workflow use cases: definitions, manual runs, delayed actions and schedule triggers."""

from arbor.application.use_cases.workflows.scheduled_actions import DelayedActionRunner
from arbor.application.use_cases.workflows.scheduled_triggers import ScheduledTriggerRunner
from arbor.application.use_cases.workflows.workflow_service import WorkflowService

__all__ = ["DelayedActionRunner", "ScheduledTriggerRunner", "WorkflowService"]

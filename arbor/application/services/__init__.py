"""Engine services: condition evaluation, matching, rate gates, retry policy, execution."""

from arbor.application.services.action_executor import ActionExecutor
from arbor.application.services.condition_evaluator import (
    evaluate_condition,
    evaluate_conditions,
    resolve_field,
)
from arbor.application.services.rate_guard import GateDecision, WorkflowRateGuard
from arbor.application.services.retry_policy import RetryPolicy
from arbor.application.services.workflow_matcher import WorkflowMatch, WorkflowMatcher

__all__ = [
    "ActionExecutor",
    "GateDecision",
    "RetryPolicy",
    "WorkflowMatch",
    "WorkflowMatcher",
    "WorkflowRateGuard",
    "evaluate_condition",
    "evaluate_conditions",
    "resolve_field",
]

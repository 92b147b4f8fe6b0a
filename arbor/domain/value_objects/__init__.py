"""Domain value objects."""

from arbor.domain.value_objects.condition import Condition, parse_conditions
from arbor.domain.value_objects.schedule import CronExpression, TriggerSchedule

__all__ = ["Condition", "CronExpression", "TriggerSchedule", "parse_conditions"]

"""Schedule trigger value objects: 5-field cron expressions and one-shot run times.

A schedule trigger's config holds either {"cron": "0 8 * * 1-5"} (optionally
with "timezone", default UTC) or {"run_at": "2026-04-01T09:00:00"} for a
single run. Cron fields are minute, hour, day of month, month and day of
week (0-6 with Sunday as 0; 7 also means Sunday). Each field accepts *, a
number, a range a-b, a step */n, a-b/n or n/m, or a comma list of those.
All five fields must match; day of month and day of week are not OR-ed.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from arbor.domain.exceptions import ValidationException

CRON_FIELD = "triggers.config.cron"

# Any satisfiable expression (e.g. Feb 29 on a Monday) matches within 28 years.
_SEARCH_DAYS = 366 * 28

_FIELD_BOUNDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day of month", 1, 31),
    ("month", 1, 12),
    ("day of week", 0, 7),
)


def _number(text: str, name: str) -> int:
    if not text.isdecimal():
        raise ValidationException(f"Invalid cron {name} value: {text!r}", CRON_FIELD)
    return int(text)


def _parse_field(text: str, name: str, low: int, high: int) -> frozenset[int]:
    values: set[int] = set()
    for part in text.split(","):
        step = 1
        if "/" in part:
            part, _, step_text = part.partition("/")
            step = _number(step_text, name)
            if step < 1:
                raise ValidationException(f"Cron {name} step must be at least 1", CRON_FIELD)
        if part == "*":
            start, end = low, high
        elif "-" in part:
            first, _, last = part.partition("-")
            start, end = _number(first, name), _number(last, name)
        else:
            start = _number(part, name)
            end = high if step > 1 else start
        if start < low or end > high or start > end:
            raise ValidationException(
                f"Cron {name} out of range {low}-{high}: {text!r}", CRON_FIELD
            )
        values.update(range(start, end + 1, step))
    return frozenset(values)


def _cron_weekday(day: date) -> int:
    return day.isoweekday() % 7


@dataclass(frozen=True)
class CronExpression:
    """Parsed cron expression; each field is the set of values it allows."""

    expression: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]

    @classmethod
    def parse(cls, expression: Any) -> "CronExpression":
        """Parse a 5-field expression. Raises ValidationException when malformed."""
        if not isinstance(expression, str):
            raise ValidationException("Cron expression must be a string", CRON_FIELD)
        parts = expression.split()
        if len(parts) != 5:
            raise ValidationException(
                f"Cron expression needs 5 fields, got {len(parts)}: {expression!r}",
                CRON_FIELD,
            )
        minutes, hours, days, months, weekdays = (
            _parse_field(part, name, low, high)
            for part, (name, low, high) in zip(parts, _FIELD_BOUNDS)
        )
        if 7 in weekdays:
            weekdays = (weekdays - {7}) | {0}
        return cls(
            expression=" ".join(parts),
            minutes=minutes,
            hours=hours,
            days=days,
            months=months,
            weekdays=weekdays,
        )

    def matches(self, moment: datetime) -> bool:
        return (
            moment.minute in self.minutes
            and moment.hour in self.hours
            and self._matches_day(moment.date())
        )

    def next_after(self, moment: datetime) -> datetime | None:
        """First matching minute strictly after moment, in moment's tzinfo. None if none exists."""
        start = moment.replace(second=0, microsecond=0) + timedelta(minutes=1)
        hours = sorted(self.hours)
        minutes = sorted(self.minutes)
        for offset in range(_SEARCH_DAYS):
            day = start.date() + timedelta(days=offset)
            if not self._matches_day(day):
                continue
            for hour in hours:
                for minute in minutes:
                    candidate = datetime(
                        day.year, day.month, day.day, hour, minute, tzinfo=moment.tzinfo
                    )
                    if candidate >= start:
                        return candidate
        return None

    def _matches_day(self, day: date) -> bool:
        return (
            day.month in self.months
            and day.day in self.days
            and _cron_weekday(day) in self.weekdays
        )


def _zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise ValidationException(
            f"Unknown timezone: {name!r}", "triggers.config.timezone"
        ) from None


def _parse_run_at(raw: Any, zone: tzinfo) -> datetime:
    if isinstance(raw, str):
        try:
            raw = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationException(
                f"run_at must be an ISO 8601 datetime: {raw!r}", "triggers.config.run_at"
            ) from None
    if not isinstance(raw, datetime):
        raise ValidationException(
            "run_at must be an ISO 8601 datetime", "triggers.config.run_at"
        )
    if raw.tzinfo is None:
        raw = raw.replace(tzinfo=zone)
    return raw.astimezone(UTC)


@dataclass(frozen=True)
class TriggerSchedule:
    """When a schedule trigger fires: a cron expression in a timezone, or once at run_at."""

    timezone: str = "UTC"
    cron: CronExpression | None = None
    run_at: datetime | None = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TriggerSchedule":
        """Build from a trigger config. Raises ValidationException when invalid."""
        cron_text = config.get("cron")
        run_at = config.get("run_at")
        if (cron_text is None) == (run_at is None):
            raise ValidationException(
                "Schedule triggers need exactly one of config.cron or config.run_at",
                "triggers.config",
            )
        timezone = config.get("timezone") or "UTC"
        if not isinstance(timezone, str):
            raise ValidationException("timezone must be a string", "triggers.config.timezone")
        zone = _zone(timezone)
        if run_at is not None:
            return cls(timezone=timezone, run_at=_parse_run_at(run_at, zone))
        cron = CronExpression.parse(cron_text)
        if cron.next_after(datetime(2000, 1, 1, tzinfo=UTC)) is None:
            raise ValidationException(
                f"Cron expression never matches: {cron.expression!r}", CRON_FIELD
            )
        return cls(timezone=timezone, cron=cron)

    @property
    def is_recurring(self) -> bool:
        return self.cron is not None

    @property
    def key(self) -> str:
        """Identity of the schedule; a changed key resets the stored next run."""
        if self.cron is not None:
            return f"cron:{self.cron.expression}@{self.timezone}"
        return f"once:{self.run_at.isoformat()}"

    def first_run(self, now: datetime) -> datetime | None:
        """Fire time for a newly seen trigger. A one-shot in the past fires right away."""
        if self.cron is None:
            return self.run_at
        return self.next_run(now)

    def next_run(self, after: datetime) -> datetime | None:
        """Next fire time (UTC) strictly after `after`, or None when nothing is left."""
        if self.cron is None:
            return self.run_at if self.run_at > after else None
        upcoming = self.cron.next_after(after.astimezone(_zone(self.timezone)))
        return upcoming.astimezone(UTC) if upcoming is not None else None

"""Schedule trigger value objects: cron parsing, next fire times, one-shot run_at."""

from datetime import UTC, datetime

import pytest

from arbor.domain.exceptions import ValidationException
from arbor.domain.value_objects.schedule import CronExpression, TriggerSchedule

# Tuesday
NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("expression", "after", "expected"),
    [
        ("*/15 * * * *", NOW, datetime(2026, 3, 10, 9, 15, tzinfo=UTC)),
        (
            "*/15 * * * *",
            NOW.replace(minute=7, second=30),
            datetime(2026, 3, 10, 9, 15, tzinfo=UTC),
        ),
        ("5/20 * * * *", NOW.replace(minute=30), datetime(2026, 3, 10, 9, 45, tzinfo=UTC)),
        ("0 8 * * 1-5", NOW, datetime(2026, 3, 11, 8, 0, tzinfo=UTC)),
        ("30 9 * * 0", NOW, datetime(2026, 3, 15, 9, 30, tzinfo=UTC)),
        ("30 9 * * 7", NOW, datetime(2026, 3, 15, 9, 30, tzinfo=UTC)),
        ("0 0 1 * *", NOW, datetime(2026, 4, 1, 0, 0, tzinfo=UTC)),
        ("0 12,18 * * *", NOW, datetime(2026, 3, 10, 12, 0, tzinfo=UTC)),
        ("0 0 29 2 *", NOW, datetime(2028, 2, 29, 0, 0, tzinfo=UTC)),
    ],
)
def test_next_after(expression, after, expected) -> None:
    assert CronExpression.parse(expression).next_after(after) == expected


def test_next_after_is_strictly_later() -> None:
    cron = CronExpression.parse("0 9 * * *")
    assert cron.matches(NOW)
    assert cron.next_after(NOW) == datetime(2026, 3, 11, 9, 0, tzinfo=UTC)


def test_day_of_month_and_weekday_must_both_match() -> None:
    # The 13th that falls on a Friday.
    cron = CronExpression.parse("0 0 13 * 5")
    assert cron.next_after(NOW) == datetime(2026, 3, 13, 0, 0, tzinfo=UTC)
    assert cron.next_after(datetime(2026, 3, 13, 0, 0, tzinfo=UTC)) == datetime(
        2026, 11, 13, 0, 0, tzinfo=UTC
    )


@pytest.mark.parametrize(
    "expression",
    [
        "61 * * * *",
        "* 24 * * *",
        "* * 0 * *",
        "* * * 13 *",
        "* * * * 8",
        "* * *",
        "* * * * * *",
        "a * * * *",
        "*/0 * * * *",
        "5-1 * * * *",
        "1,,2 * * * *",
        "",
        123,
    ],
)
def test_invalid_cron_is_rejected(expression) -> None:
    with pytest.raises(ValidationException) as exc_info:
        CronExpression.parse(expression)
    assert exc_info.value.details["field"] == "triggers.config.cron"


def test_cron_that_never_matches_is_rejected() -> None:
    assert CronExpression.parse("0 0 31 2 *").next_after(NOW) is None
    with pytest.raises(ValidationException, match="never matches"):
        TriggerSchedule.from_config({"cron": "0 0 31 2 *"})


def test_cron_in_local_timezone() -> None:
    schedule = TriggerSchedule.from_config(
        {"cron": "0 8 * * *", "timezone": "America/New_York"}
    )
    # 05:00 EDT; daylight time started on March 8.
    assert schedule.next_run(NOW) == datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
    assert schedule.is_recurring
    assert schedule.key == "cron:0 8 * * *@America/New_York"


def test_first_cron_run_is_after_now() -> None:
    schedule = TriggerSchedule.from_config({"cron": "0 * * * *"})
    assert schedule.first_run(NOW) == datetime(2026, 3, 10, 10, 0, tzinfo=UTC)


def test_one_shot_run_at() -> None:
    schedule = TriggerSchedule.from_config({"run_at": "2026-03-12T10:00:00"})
    run_at = datetime(2026, 3, 12, 10, 0, tzinfo=UTC)

    assert not schedule.is_recurring
    assert schedule.first_run(NOW) == run_at
    assert schedule.next_run(NOW) == run_at
    assert schedule.next_run(run_at) is None
    assert schedule.key == "once:2026-03-12T10:00:00+00:00"


def test_one_shot_in_the_past_still_fires_once() -> None:
    schedule = TriggerSchedule.from_config(
        {"run_at": "2026-03-10T08:00:00", "timezone": "Europe/London"}
    )
    assert schedule.first_run(NOW) == datetime(2026, 3, 10, 8, 0, tzinfo=UTC)
    assert schedule.next_run(NOW) is None


def test_naive_run_at_uses_the_timezone() -> None:
    schedule = TriggerSchedule.from_config(
        {"run_at": "2026-07-01T09:00:00", "timezone": "America/Chicago"}
    )
    assert schedule.run_at == datetime(2026, 7, 1, 14, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("config", "field"),
    [
        ({}, "triggers.config"),
        ({"cron": "* * * * *", "run_at": "2026-03-12T10:00:00"}, "triggers.config"),
        ({"cron": "* * * * *", "timezone": "Nowhere/Special"}, "triggers.config.timezone"),
        ({"cron": "* * * * *", "timezone": 5}, "triggers.config.timezone"),
        ({"run_at": "next tuesday"}, "triggers.config.run_at"),
        ({"run_at": 1700000000}, "triggers.config.run_at"),
    ],
)
def test_invalid_schedule_config(config, field) -> None:
    with pytest.raises(ValidationException) as exc_info:
        TriggerSchedule.from_config(config)
    assert exc_info.value.details["field"] == field

"""Retry policy for failed event processing (exponential backoff, capped)."""

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class RetryPolicy:
    """max_attempts total tries; delay doubles from base_delay_seconds up to max_delay_seconds.

    With the defaults an event is tried 5 times, waiting 1, 2, 4, 8 and 16
    minutes between attempts.
    """

    max_attempts: int = 5
    base_delay_seconds: int = 60
    max_delay_seconds: int = 960

    def delay_for(self, attempts: int) -> timedelta:
        """Backoff after the given number of attempts (attempts >= 1)."""
        exponent = max(attempts - 1, 0)
        seconds = min(self.base_delay_seconds * (2**exponent), self.max_delay_seconds)
        return timedelta(seconds=seconds)

    def next_attempt_at(self, attempts: int, now: datetime) -> datetime | None:
        """When to try again, or None once attempts are exhausted."""
        if attempts >= self.max_attempts:
            return None
        return now + self.delay_for(attempts)

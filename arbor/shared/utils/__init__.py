"""Small, dependency-free helpers (datetime, id generation)."""

from arbor.shared.utils.datetime import ensure_utc, start_of_utc_day, utc_now
from arbor.shared.utils.generators import generate_cuid

__all__ = ["ensure_utc", "generate_cuid", "start_of_utc_day", "utc_now"]

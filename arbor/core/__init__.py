"""Core: config, runtime wiring and application bootstrap."""

from arbor.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]

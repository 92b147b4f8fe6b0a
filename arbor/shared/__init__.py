"""Shared kernel: enums, telemetry and small utilities used by every layer."""

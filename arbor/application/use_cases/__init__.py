"""Use cases: event emission and processing, workflow management, execution history."""

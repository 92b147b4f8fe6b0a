"""Application layer: use cases, engine services, DTOs and ports."""

"""Application layer: Resource orchestration."""

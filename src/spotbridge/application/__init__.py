"""Application layer - caches and backend services."""

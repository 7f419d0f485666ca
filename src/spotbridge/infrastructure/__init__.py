"""Infrastructure layer - HTTP access, rate limiting, observability."""

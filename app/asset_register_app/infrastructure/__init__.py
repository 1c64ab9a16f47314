"""Infrastructure adapters for logging."""

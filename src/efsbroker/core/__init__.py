"""Core domain, models, interfaces and error types."""

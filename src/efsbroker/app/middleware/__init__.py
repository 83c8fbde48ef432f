"""Middleware module."""

from efsbroker.app.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]

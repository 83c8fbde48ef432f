"""Request logging middleware.

Provides canonical log line per request with trace ID propagation.
"""

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from efsbroker.app.config import get_settings
from efsbroker.app.logging import clear_trace_context, set_trace_id
from efsbroker.app.metrics.collector import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL
from efsbroker.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)

# Path normalization patterns (replace instance/binding ids with placeholders)
_PATH_PATTERNS = [
    (
        re.compile(r"^/v2/service_instances/[^/]+/service_bindings/[^/]+$"),
        "/v2/service_instances/:id/service_bindings/:bid",
    ),
    (
        re.compile(r"^/v2/service_instances/[^/]+/last_operation$"),
        "/v2/service_instances/:id/last_operation",
    ),
    (re.compile(r"^/v2/service_instances/[^/]+$"), "/v2/service_instances/:id"),
]

# Whitelist of known routes for metrics (cardinality control)
_KNOWN_ROUTES = frozenset({
    "/v2/catalog",
    "/v2/service_instances/:id",
    "/v2/service_instances/:id/last_operation",
    "/v2/service_instances/:id/service_bindings/:bid",
})

_SKIP_PATHS = ("/health", "/metrics")


def _normalize_path(path: str) -> str:
    """Normalize path and apply whitelist for cardinality control."""
    for pattern, replacement in _PATH_PATTERNS:
        if pattern.match(path):
            path = replacement
            break
    return path if path in _KNOWN_ROUTES else "other"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging with trace ID propagation.

    - Sets trace_id from X-Trace-ID header or generates new one
    - Logs one line per request (status, duration, path)
    - Adds X-Trace-ID header to response
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        trace_id = set_trace_id(request.headers.get("x-trace-id"))
        slow_threshold_ms = get_settings().logging.slow_threshold_ms

        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.monotonic() - start) * 1000
            logger.error(
                "Request failed",
                extra={
                    "event": LogEvent.REQUEST_FAILED,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": duration_ms,
                },
            )
            raise
        finally:
            clear_trace_context()

        duration_seconds = time.monotonic() - start
        duration_ms = duration_seconds * 1000

        if request.url.path not in _SKIP_PATHS:
            route = _normalize_path(request.url.path)
            HTTP_REQUESTS_TOTAL.labels(
                method=request.method,
                route=route,
                status=str(response.status_code),
            ).inc()
            HTTP_REQUEST_DURATION.labels(method=request.method, route=route).observe(
                duration_seconds
            )

            level = logging.WARNING if response.status_code >= 400 else logging.INFO
            logger.log(
                level,
                "Request completed",
                extra={
                    "event": LogEvent.REQUEST_COMPLETE
                    if response.status_code < 400
                    else LogEvent.REQUEST_REJECTED,
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "trace_id": trace_id,
                },
            )

            if duration_ms > slow_threshold_ms:
                logger.warning(
                    "Slow request detected",
                    extra={
                        "event": LogEvent.REQUEST_SLOW,
                        "method": request.method,
                        "path": request.url.path,
                        "status": response.status_code,
                        "duration_ms": duration_ms,
                        "threshold_ms": slow_threshold_ms,
                        "trace_id": trace_id,
                    },
                )

        response.headers["X-Trace-ID"] = trace_id
        return response

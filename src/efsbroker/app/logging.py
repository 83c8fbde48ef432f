"""JSON logging for the broker.

Every line carries the schema version and service name. Request lines add
the request trace id; lines emitted from a lifecycle task add the trace id,
instance_id and operation of that task.
"""

import logging
import sys
import time
from collections import defaultdict, deque
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pythonjsonlogger import jsonlogger

from efsbroker.app.config import LoggingConfig, get_settings

trace_id_ctx: ContextVar[str | None] = ContextVar("trace_id", default=None)
instance_id_ctx: ContextVar[str | None] = ContextVar("instance_id", default=None)
operation_ctx: ContextVar[str | None] = ContextVar("operation", default=None)


def set_trace_id(trace_id: str | None = None) -> str:
    """Set the request trace id, generating one if not provided."""
    tid = trace_id or uuid4().hex
    trace_id_ctx.set(tid)
    return tid


def set_operation_context(instance_id: str, operation: str) -> str:
    """Bind a lifecycle task's log lines to its instance and operation.

    Call from inside the task: asyncio copies the context at task creation,
    so the values never leak into the request that spawned it.

    Returns:
        The trace id generated for this operation run.
    """
    instance_id_ctx.set(instance_id)
    operation_ctx.set(operation)
    return set_trace_id()


def clear_trace_context() -> None:
    trace_id_ctx.set(None)
    instance_id_ctx.set(None)
    operation_ctx.set(None)


def _rate_key(record: logging.LogRecord) -> tuple[str, str, str | None]:
    event = getattr(record, "event", None) or str(record.msg)
    resource = (
        getattr(record, "instance_id", None)
        or instance_id_ctx.get()
        or getattr(record, "fs_id", None)
    )
    return record.name, event, resource


class RateLimitFilter(logging.Filter):
    """Caps repeated lines per (logger, event, instance) and minute.

    Poll loops log the same event for the same volume on every interval; the
    cap is per resource, so one slow file system does not hide the others.
    ERROR and above always pass. The first line let through after a
    suppressed run carries a ``suppressed`` count.
    """

    def __init__(
        self,
        rate_per_minute: int = 100,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.rate_per_minute = rate_per_minute
        self._now = now
        self._seen: dict[tuple, deque[float]] = defaultdict(deque)
        self._suppressed: dict[tuple, int] = defaultdict(int)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True

        key = _rate_key(record)
        now = self._now()
        seen = self._seen[key]
        while seen and now - seen[0] >= 60:
            seen.popleft()

        if len(seen) >= self.rate_per_minute:
            self._suppressed[key] += 1
            return False

        seen.append(now)
        if suppressed := self._suppressed.pop(key, 0):
            record.suppressed = suppressed
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding schema, service and trace/operation context."""

    def __init__(
        self,
        *args: Any,
        schema_version: str = "1.0",
        service: str = "efs-broker",
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._schema_version = schema_version
        self._service = service

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["schema_version"] = self._schema_version
        log_record["service"] = self._service

        if trace_id := trace_id_ctx.get():
            log_record["trace_id"] = trace_id
        # Explicit extra= values win over the task context
        if instance_id := instance_id_ctx.get():
            log_record.setdefault("instance_id", instance_id)
        if operation := operation_ctx.get():
            log_record.setdefault("operation", operation)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        log_record.pop("color_message", None)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install the JSON handler on the root and uvicorn loggers."""
    config = config or get_settings().logging
    level = getattr(logging, config.level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        CustomJsonFormatter(schema_version=config.schema_version, service=config.service_name)
    )
    handler.addFilter(RateLimitFilter(config.rate_limit_per_minute))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = False
        uv_logger.addHandler(handler)

    # LoggingMiddleware writes the request lines
    logging.getLogger("uvicorn.access").disabled = True
    for name in ("botocore", "aiobotocore", "aioboto3"):
        logging.getLogger(name).setLevel(logging.WARNING)

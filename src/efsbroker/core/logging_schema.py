"""Logging field schema - v1.0

Standard fields (added to all logs):
- schema_version: Log schema version
- service: Service name (efs-broker)
- event: Event type (operation_started, operation_failed, etc.)
- trace_id: Request or operation trace ID
- duration_ms: Duration in milliseconds

High cardinality fields (OK in logs, NOT in metric labels):
- instance_id: Service instance ID
- binding_id: Service binding ID
- fs_id: EFS file system ID
"""

from enum import StrEnum


class LogEvent(StrEnum):
    """Standard log event types."""

    # Lifecycle events
    OPERATION_ACCEPTED = "operation_accepted"
    OPERATION_STARTED = "operation_started"
    OPERATION_SUCCESS = "operation_success"
    OPERATION_FAILED = "operation_failed"
    OPERATION_TIMEOUT = "operation_timeout"
    OPERATION_RESUMED = "operation_resumed"
    STATE_CHANGED = "state_changed"
    POLL_ERROR = "poll_error"

    # Remote API events
    REMOTE_CALL = "remote_call"
    REMOTE_ERROR = "remote_error"

    # Persistence events
    STATE_SAVED = "state_saved"
    STATE_RESTORED = "state_restored"
    PERSIST_FAILED = "persist_failed"
    DB_CONNECTED = "db_connected"
    DB_ERROR = "db_error"

    # Application events
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"

    # API events
    REQUEST_COMPLETE = "request_complete"
    REQUEST_FAILED = "request_failed"
    REQUEST_SLOW = "request_slow"
    REQUEST_REJECTED = "request_rejected"

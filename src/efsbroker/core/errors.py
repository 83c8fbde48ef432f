"""Error handling module for efs-broker.

This module defines error codes, exception classes, and response models.

Error Response Format (Open Service Broker API):
{
    "error": "AsyncRequired",
    "description": "This service plan requires client support for asynchronous service operations."
}

Usage:
    from efsbroker.core.errors import InstanceNotFoundError, InstanceConflictError

    # Raise with default message
    raise InstanceNotFoundError()

    # Raise with custom message
    raise InstanceConflictError("instance fs-1 already exists with different details")
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    ASYNC_REQUIRED = "AsyncRequired"
    CONCURRENCY_ERROR = "ConcurrencyError"
    INSTANCE_ALREADY_EXISTS = "InstanceAlreadyExists"
    INSTANCE_NOT_FOUND = "InstanceDoesNotExist"
    BINDING_ALREADY_EXISTS = "BindingAlreadyExists"
    BINDING_NOT_FOUND = "BindingDoesNotExist"
    INVALID_PARAMETERS = "InvalidParameters"
    UNKNOWN_PLAN = "UnknownPlan"
    UNRECOGNIZED_OPERATION = "UnrecognizedOperation"
    PLAN_NOT_UPDATABLE = "PlanNotUpdatable"
    PRECONDITION_FAILED = "PreconditionFailed"
    OPERATION_TIMEOUT = "OperationTimeout"
    REMOTE_ERROR = "RemoteError"
    STATE_STORE_ERROR = "StateStoreError"


class ErrorResponse(BaseModel):
    """Error response format."""

    error: str
    description: str


class BrokerError(Exception):
    """Base exception for efs-broker.

    All broker specific exceptions should inherit from this class.
    This enables centralized exception handling in FastAPI.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code to return
    """

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(error=self.code.value, description=self.message)


class AsyncRequiredError(BrokerError):
    """422 Unprocessable Entity - Client must accept incomplete operations."""

    def __init__(
        self,
        message: str = "This service plan requires client support for asynchronous service operations.",
    ) -> None:
        super().__init__(ErrorCode.ASYNC_REQUIRED, message, 422)


class ConcurrencyError(BrokerError):
    """422 Unprocessable Entity - Another operation for this instance is in progress."""

    def __init__(
        self, message: str = "Another operation for this service instance is in progress."
    ) -> None:
        super().__init__(ErrorCode.CONCURRENCY_ERROR, message, 422)


class InstanceConflictError(BrokerError):
    """409 Conflict - Instance id reused with different request details."""

    def __init__(self, message: str = "instance already exists") -> None:
        super().__init__(ErrorCode.INSTANCE_ALREADY_EXISTS, message, 409)


class InstanceNotFoundError(BrokerError):
    """410 Gone - Instance does not exist."""

    def __init__(self, message: str = "instance does not exist", status_code: int = 410) -> None:
        super().__init__(ErrorCode.INSTANCE_NOT_FOUND, message, status_code)


class BindingConflictError(BrokerError):
    """409 Conflict - Binding id reused with different request details."""

    def __init__(self, message: str = "binding already exists") -> None:
        super().__init__(ErrorCode.BINDING_ALREADY_EXISTS, message, 409)


class BindingNotFoundError(BrokerError):
    """410 Gone - Binding does not exist."""

    def __init__(self, message: str = "binding does not exist") -> None:
        super().__init__(ErrorCode.BINDING_NOT_FOUND, message, 410)


class InvalidParametersError(BrokerError):
    """400 Bad Request - Request parameters failed validation."""

    def __init__(self, message: str = "invalid parameters") -> None:
        super().__init__(ErrorCode.INVALID_PARAMETERS, message, 400)


class UnknownPlanError(BrokerError):
    """400 Bad Request - Plan id is not in the catalog."""

    def __init__(self, plan_id: str) -> None:
        self.plan_id = plan_id
        super().__init__(ErrorCode.UNKNOWN_PLAN, f"unknown plan: {plan_id}", 400)


class UnrecognizedOperationError(BrokerError):
    """400 Bad Request - last_operation called with unknown operation data."""

    def __init__(self, operation: str | None) -> None:
        self.operation = operation
        super().__init__(
            ErrorCode.UNRECOGNIZED_OPERATION, f"unrecognized operationData: {operation}", 400
        )


class PlanNotUpdatableError(BrokerError):
    """422 Unprocessable Entity - Plans cannot be changed."""

    def __init__(self, message: str = "plan changes are not supported") -> None:
        super().__init__(ErrorCode.PLAN_NOT_UPDATABLE, message, 422)


class PreconditionError(BrokerError):
    """422 Unprocessable Entity - Remote resource is in the wrong lifecycle state."""

    def __init__(self, message: str = "precondition failed") -> None:
        super().__init__(ErrorCode.PRECONDITION_FAILED, message, 422)


class OperationTimeoutError(BrokerError):
    """504 Gateway Timeout - Background operation exceeded its deadline."""

    def __init__(self, message: str = "operation timed out") -> None:
        super().__init__(ErrorCode.OPERATION_TIMEOUT, message, 504)


class RemoteError(BrokerError):
    """502 Bad Gateway - Remote provisioning API call failed.

    Attributes:
        remote_code: Error code returned by the remote API (e.g. ThrottlingException)
        retryable: True if the failure is transient
    """

    def __init__(
        self,
        message: str = "remote provisioning API call failed",
        remote_code: str | None = None,
        retryable: bool = False,
    ) -> None:
        self.remote_code = remote_code
        self.retryable = retryable
        super().__init__(ErrorCode.REMOTE_ERROR, message, 502)


class FileSystemNotFoundError(RemoteError):
    """Remote file system does not exist."""

    def __init__(self, fs_id: str, message: str | None = None) -> None:
        self.fs_id = fs_id
        super().__init__(
            message or f"file system {fs_id} does not exist",
            remote_code="FileSystemNotFound",
        )


class MountTargetNotFoundError(RemoteError):
    """Remote mount target does not exist."""

    def __init__(self, mount_target_id: str, message: str | None = None) -> None:
        self.mount_target_id = mount_target_id
        super().__init__(
            message or f"mount target {mount_target_id} does not exist",
            remote_code="MountTargetNotFound",
        )


class NoMountTargetsError(RemoteError):
    """File system has no mount targets attached yet."""

    def __init__(self, fs_id: str) -> None:
        self.fs_id = fs_id
        super().__init__(f"no mount targets found for {fs_id}", remote_code="NoMountTargets")


class StateStoreError(BrokerError):
    """500 Internal Server Error - State store could not be read or written."""

    def __init__(self, message: str = "state store failure") -> None:
        super().__init__(ErrorCode.STATE_STORE_ERROR, message, 500)

"""Tests for error handling classes."""

import pytest

from efsbroker.core.errors import (
    AsyncRequiredError,
    BindingConflictError,
    BindingNotFoundError,
    BrokerError,
    ConcurrencyError,
    ErrorCode,
    FileSystemNotFoundError,
    InstanceConflictError,
    InstanceNotFoundError,
    InvalidParametersError,
    MountTargetNotFoundError,
    NoMountTargetsError,
    OperationTimeoutError,
    PlanNotUpdatableError,
    PreconditionError,
    RemoteError,
    StateStoreError,
    UnknownPlanError,
    UnrecognizedOperationError,
)


class TestStatusCodes:
    @pytest.mark.parametrize(
        ("exc", "code", "status"),
        [
            (AsyncRequiredError(), ErrorCode.ASYNC_REQUIRED, 422),
            (ConcurrencyError(), ErrorCode.CONCURRENCY_ERROR, 422),
            (InstanceConflictError(), ErrorCode.INSTANCE_ALREADY_EXISTS, 409),
            (InstanceNotFoundError(), ErrorCode.INSTANCE_NOT_FOUND, 410),
            (BindingConflictError(), ErrorCode.BINDING_ALREADY_EXISTS, 409),
            (BindingNotFoundError(), ErrorCode.BINDING_NOT_FOUND, 410),
            (InvalidParametersError(), ErrorCode.INVALID_PARAMETERS, 400),
            (UnknownPlanError("gold"), ErrorCode.UNKNOWN_PLAN, 400),
            (UnrecognizedOperationError("resize"), ErrorCode.UNRECOGNIZED_OPERATION, 400),
            (PlanNotUpdatableError(), ErrorCode.PLAN_NOT_UPDATABLE, 422),
            (PreconditionError(), ErrorCode.PRECONDITION_FAILED, 422),
            (OperationTimeoutError(), ErrorCode.OPERATION_TIMEOUT, 504),
            (RemoteError(), ErrorCode.REMOTE_ERROR, 502),
            (StateStoreError(), ErrorCode.STATE_STORE_ERROR, 500),
        ],
    )
    def test_code_and_status(self, exc: BrokerError, code: ErrorCode, status: int) -> None:
        assert isinstance(exc, BrokerError)
        assert exc.code == code
        assert exc.status_code == status

    def test_not_found_status_override(self) -> None:
        """Bind on an unknown instance answers 404 instead of 410."""
        exc = InstanceNotFoundError(status_code=404)
        assert exc.status_code == 404


class TestToResponse:
    def test_osb_error_body(self) -> None:
        resp = AsyncRequiredError().to_response()

        assert resp.model_dump() == {
            "error": "AsyncRequired",
            "description": "This service plan requires client support for asynchronous service operations.",
        }

    def test_custom_message(self) -> None:
        exc = InstanceConflictError("instance fs-1 already exists with different details")
        assert exc.to_response().description == exc.message
        assert str(exc) == exc.message

    def test_unknown_plan_message(self) -> None:
        assert UnknownPlanError("gold").message == "unknown plan: gold"


class TestRemoteErrors:
    def test_subclasses_carry_remote_codes(self) -> None:
        assert FileSystemNotFoundError("fs-1").remote_code == "FileSystemNotFound"
        assert MountTargetNotFoundError("fsmt-1").remote_code == "MountTargetNotFound"
        assert NoMountTargetsError("fs-1").remote_code == "NoMountTargets"

    def test_default_not_retryable(self) -> None:
        assert RemoteError("boom").retryable is False
        assert FileSystemNotFoundError("fs-1").retryable is False

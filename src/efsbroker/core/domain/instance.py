"""Service instance domain enums."""

from enum import StrEnum


class Phase(StrEnum):
    """Service instance lifecycle phase."""

    PROVISIONING = "PROVISIONING"
    AVAILABLE = "AVAILABLE"
    DEPROVISIONING = "DEPROVISIONING"
    FAILED = "FAILED"


class LifeCycleState(StrEnum):
    """EFS file system / mount target LifeCycleState values."""

    CREATING = "creating"
    AVAILABLE = "available"
    UPDATING = "updating"
    DELETING = "deleting"
    DELETED = "deleted"
    ERROR = "error"


class OperationState(StrEnum):
    """Externally visible last_operation state (OSB vocabulary)."""

    IN_PROGRESS = "in progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class OperationType(StrEnum):
    """Operation data handed back to the platform for polling."""

    PROVISION = "provision"
    DEPROVISION = "deprovision"


class PerformanceMode(StrEnum):
    """EFS performance modes (one per catalog plan)."""

    GENERAL_PURPOSE = "generalPurpose"
    MAX_IO = "maxIO"


class FailureReason(StrEnum):
    """failure_reason prefixes recorded on FAILED instances."""

    TIMEOUT = "Timeout"
    PRECONDITION = "PreconditionFailed"
    REMOTE_ERROR = "RemoteError"
    UNEXPECTED_STATE = "UnexpectedState"
    INTERRUPTED = "Interrupted"


# Phases where a background task owns the instance
IN_FLIGHT_PHASES = frozenset({
    Phase.PROVISIONING,
    Phase.DEPROVISIONING,
})


def plan_to_performance_mode(plan_id: str) -> PerformanceMode:
    """Map catalog plan id to EFS performance mode (default: generalPurpose)."""
    if plan_id == PerformanceMode.MAX_IO:
        return PerformanceMode.MAX_IO
    return PerformanceMode.GENERAL_PURPOSE


def to_operation_state(state: str) -> OperationState:
    """Map a remote lifecycle state to an operation state.

    creating → in progress, available → succeeded, anything else → failed.
    """
    match state:
        case LifeCycleState.CREATING:
            return OperationState.IN_PROGRESS
        case LifeCycleState.AVAILABLE:
            return OperationState.SUCCEEDED
        case _:
            return OperationState.FAILED

"""Domain enums."""

from efsbroker.core.domain.instance import (
    IN_FLIGHT_PHASES,
    FailureReason,
    LifeCycleState,
    OperationState,
    OperationType,
    PerformanceMode,
    Phase,
    plan_to_performance_mode,
    to_operation_state,
)

__all__ = [
    "FailureReason",
    "LifeCycleState",
    "OperationState",
    "OperationType",
    "PerformanceMode",
    "Phase",
    "IN_FLIGHT_PHASES",
    "plan_to_performance_mode",
    "to_operation_state",
]

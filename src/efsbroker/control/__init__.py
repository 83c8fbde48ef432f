"""Control plane - guarded state, status reconciliation and lifecycle workflows."""

from efsbroker.control.lifecycle import LifecycleController, OperationStatus
from efsbroker.control.reconciler import StatusReconciler
from efsbroker.control.state import BrokerState

__all__ = [
    "BrokerState",
    "LifecycleController",
    "OperationStatus",
    "StatusReconciler",
]

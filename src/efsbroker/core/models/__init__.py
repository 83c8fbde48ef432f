"""Instance, binding and catalog records (pydantic)."""

from efsbroker.core.models.catalog import (
    Binding,
    Service,
    ServicePlan,
    SharedDevice,
    VolumeMount,
)
from efsbroker.core.models.instance import (
    BindDetails,
    BindingRecord,
    BindParameters,
    PersistedState,
    ProvisionDetails,
    ResourceInstance,
    utc_now,
)

__all__ = [
    # Records
    "BindDetails",
    "BindingRecord",
    "BindParameters",
    "PersistedState",
    "ProvisionDetails",
    "ResourceInstance",
    "utc_now",
    # Catalog / bind results
    "Binding",
    "Service",
    "ServicePlan",
    "SharedDevice",
    "VolumeMount",
]

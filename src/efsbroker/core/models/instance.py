"""Service instance and binding records.

These are the only records the broker keeps. Both stores persist them as
JSON (model_dump_json / model_validate_json), so every field here must
round-trip exactly.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from efsbroker.core.domain.instance import Phase


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class ProvisionDetails(BaseModel):
    """Provision request as received from the platform.

    Used as the request fingerprint: a second provision for the same
    instance id only conflicts when the details differ.
    """

    service_id: str
    plan_id: str
    organization_guid: str = ""
    space_guid: str = ""
    parameters: dict[str, Any] | None = None


class BindDetails(BaseModel):
    """Bind request as received from the platform (binding fingerprint)."""

    service_id: str
    plan_id: str
    app_guid: str | None = None
    bind_resource: dict[str, Any] | None = None
    parameters: dict[str, Any] | None = None


class BindParameters(BaseModel):
    """Recognized bind parameters.

    mount: container path for the volume (default: {container_dir}/{instance_id})
    readonly: mount read-only when true
    """

    model_config = ConfigDict(extra="forbid")

    mount: str | None = None
    readonly: StrictBool = False


class ResourceInstance(BaseModel):
    """Provisioned EFS file system tracked by service instance id."""

    id: str
    details: ProvisionDetails
    remote_id: str | None = None  # EFS FileSystemId, set after create_file_system
    phase: Phase = Phase.PROVISIONING
    failure_reason: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class BindingRecord(BaseModel):
    """Service binding attached to an instance."""

    id: str
    instance_id: str
    details: BindDetails
    created_at: datetime = Field(default_factory=utc_now)


class PersistedState(BaseModel):
    """Serializable snapshot of all instances and bindings."""

    instances: dict[str, ResourceInstance] = Field(default_factory=dict)
    bindings: dict[str, BindingRecord] = Field(default_factory=dict)

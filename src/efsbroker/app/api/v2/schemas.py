"""OSB v2 request/response bodies."""

from typing import Any

from pydantic import BaseModel

from efsbroker.core.domain import OperationState
from efsbroker.core.models import BindDetails, ProvisionDetails, Service


class ProvisionRequest(BaseModel):
    service_id: str
    plan_id: str
    organization_guid: str = ""
    space_guid: str = ""
    parameters: dict[str, Any] | None = None

    def to_details(self) -> ProvisionDetails:
        return ProvisionDetails(**self.model_dump())


class BindRequest(BaseModel):
    service_id: str
    plan_id: str
    app_guid: str | None = None
    bind_resource: dict[str, Any] | None = None
    parameters: dict[str, Any] | None = None

    def to_details(self) -> BindDetails:
        app_guid = self.app_guid
        if app_guid is None and self.bind_resource:
            app_guid = self.bind_resource.get("app_guid")
        return BindDetails(
            service_id=self.service_id,
            plan_id=self.plan_id,
            app_guid=app_guid,
            bind_resource=self.bind_resource,
            parameters=self.parameters,
        )


class UpdateRequest(BaseModel):
    service_id: str | None = None
    plan_id: str | None = None
    parameters: dict[str, Any] | None = None


class CatalogResponse(BaseModel):
    services: list[Service]


class AsyncOperationResponse(BaseModel):
    operation: str


class LastOperationResponse(BaseModel):
    state: OperationState
    description: str | None = None

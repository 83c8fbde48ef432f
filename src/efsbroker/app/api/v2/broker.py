"""Open Service Broker v2 endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from efsbroker.app.api.v2.schemas import (
    AsyncOperationResponse,
    BindRequest,
    CatalogResponse,
    LastOperationResponse,
    ProvisionRequest,
    UpdateRequest,
)
from efsbroker.app.context import get_service
from efsbroker.core.models import Binding
from efsbroker.services.broker_service import BrokerService

router = APIRouter(prefix="/v2", tags=["broker"])

Broker = Annotated[BrokerService, Depends(get_service)]
AcceptsIncomplete = Annotated[bool, Query()]


@router.get("/catalog", response_model=CatalogResponse)
async def catalog(service: Broker) -> CatalogResponse:
    return CatalogResponse(services=service.catalog())


@router.put(
    "/service_instances/{instance_id}",
    response_model=AsyncOperationResponse,
    status_code=202,
)
async def provision(
    instance_id: str,
    request: ProvisionRequest,
    service: Broker,
    accepts_incomplete: AcceptsIncomplete = False,
) -> AsyncOperationResponse:
    """Provision an EFS volume.

    Always asynchronous: poll last_operation with the returned operation.
    """
    operation = await service.provision(instance_id, request.to_details(), accepts_incomplete)
    return AsyncOperationResponse(operation=operation)


@router.patch("/service_instances/{instance_id}")
async def update(instance_id: str, request: UpdateRequest, service: Broker) -> dict:
    await service.update(instance_id)
    return {}


@router.delete(
    "/service_instances/{instance_id}",
    response_model=AsyncOperationResponse,
    status_code=202,
)
async def deprovision(
    instance_id: str,
    service: Broker,
    accepts_incomplete: AcceptsIncomplete = False,
    service_id: str | None = None,
    plan_id: str | None = None,
) -> AsyncOperationResponse:
    operation = await service.deprovision(instance_id, accepts_incomplete)
    return AsyncOperationResponse(operation=operation)


@router.get(
    "/service_instances/{instance_id}/last_operation",
    response_model=LastOperationResponse,
    response_model_exclude_none=True,
)
async def last_operation(
    instance_id: str,
    service: Broker,
    operation: str | None = None,
) -> LastOperationResponse:
    status = await service.last_operation(instance_id, operation)
    return LastOperationResponse(state=status.state, description=status.description)


@router.put(
    "/service_instances/{instance_id}/service_bindings/{binding_id}",
    response_model=Binding,
    status_code=201,
)
async def bind(
    instance_id: str,
    binding_id: str,
    request: BindRequest,
    service: Broker,
) -> Binding:
    return await service.bind(instance_id, binding_id, request.to_details())


@router.delete("/service_instances/{instance_id}/service_bindings/{binding_id}")
async def unbind(
    instance_id: str,
    binding_id: str,
    service: Broker,
    service_id: str | None = None,
    plan_id: str | None = None,
) -> dict:
    await service.unbind(instance_id, binding_id)
    return {}

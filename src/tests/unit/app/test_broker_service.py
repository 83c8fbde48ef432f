"""Tests for BrokerService request validation and bindings."""

import pytest

from efsbroker.app.config import BrokerConfig
from efsbroker.core.domain import OperationType
from efsbroker.core.errors import (
    AsyncRequiredError,
    BindingNotFoundError,
    InstanceNotFoundError,
    InvalidParametersError,
    PlanNotUpdatableError,
    RemoteError,
)
from efsbroker.core.models import BindDetails, BindingRecord
from efsbroker.services import BrokerService


def _bind_details(**kwargs) -> BindDetails:
    return BindDetails(
        service_id="efs-service-guid",
        plan_id="generalPurpose",
        app_guid=kwargs.pop("app_guid", "app-1"),
        **kwargs,
    )


@pytest.fixture
def service(state, provider, controller) -> BrokerService:
    config = BrokerConfig(service_name="efs", container_dir="/mnt/volumes")
    return BrokerService(state, provider, controller, config)


class TestCatalog:
    def test_plans_follow_config(self, service: BrokerService) -> None:
        [catalog_service] = service.catalog()

        assert catalog_service.name == "efs"
        assert catalog_service.tags == ["efs"]
        assert {p.id for p in catalog_service.plans} == {"generalPurpose", "maxIO"}


class TestInstances:
    async def test_deprovision_requires_accepts_incomplete(self, service, state, instance_factory) -> None:
        state.instances["fs-1"] = instance_factory()

        with pytest.raises(AsyncRequiredError):
            await service.deprovision("fs-1", accepts_incomplete=False)

    async def test_update_unknown_instance(self, service) -> None:
        with pytest.raises(InstanceNotFoundError) as exc_info:
            await service.update("missing")

        assert exc_info.value.status_code == 404

    async def test_update_existing_instance(self, service, state, instance_factory) -> None:
        state.instances["fs-1"] = instance_factory()

        with pytest.raises(PlanNotUpdatableError):
            await service.update("fs-1")

    async def test_last_operation_dispatch(self, service, state, instance_factory) -> None:
        state.instances["fs-1"] = instance_factory()

        created = await service.last_operation("fs-1", OperationType.PROVISION)
        destroyed = await service.last_operation("fs-2", OperationType.DEPROVISION)

        assert created.state == "in progress"  # remote file system still creating
        assert destroyed.state == "succeeded"


class TestBind:
    async def test_default_container_dir(self, service, state, remote, instance_factory) -> None:
        state.instances["fs-1"] = instance_factory()
        remote.add_mount_target("available")

        binding = await service.bind("fs-1", "b-1", _bind_details())

        mount = binding.volume_mounts[0]
        assert mount.container_dir == "/mnt/volumes/fs-1"
        assert mount.mode == "rw"
        assert mount.device.mount_config == {"ip": "10.0.0.5"}

    async def test_invalid_parameters_are_described(self, service, state, instance_factory) -> None:
        state.instances["fs-1"] = instance_factory()

        with pytest.raises(InvalidParametersError) as exc_info:
            await service.bind("fs-1", "b-1", _bind_details(parameters={"uid": "1000"}))

        assert "uid" in exc_info.value.message
        assert "b-1" not in state.bindings

    async def test_missing_mount_address(self, service, state, remote, instance_factory) -> None:
        state.instances["fs-1"] = instance_factory()

        with pytest.raises(RemoteError):
            await service.bind("fs-1", "b-1", _bind_details())

        assert "b-1" not in state.bindings

    async def test_binding_is_persisted(self, service, state, store, remote, instance_factory) -> None:
        state.instances["fs-1"] = instance_factory()
        remote.add_mount_target("available")

        await service.bind("fs-1", "b-1", _bind_details())

        restored = await store.restore()
        assert restored.bindings["b-1"].instance_id == "fs-1"


class TestUnbind:
    async def test_binding_of_other_instance(self, service, state, instance_factory) -> None:
        state.instances["fs-1"] = instance_factory()
        state.instances["fs-2"] = instance_factory(id="fs-2")
        state.bindings["b-1"] = BindingRecord(id="b-1", instance_id="fs-2", details=_bind_details())

        with pytest.raises(BindingNotFoundError):
            await service.unbind("fs-1", "b-1")

        assert "b-1" in state.bindings

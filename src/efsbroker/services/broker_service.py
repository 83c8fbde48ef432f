"""Broker service: OSB request handling on top of the lifecycle controller.

Validates platform requests (async flag, plan id, bind parameters) and
owns the binding records. Instance lifecycle is delegated to
LifecycleController.
"""

import logging
import posixpath

from pydantic import ValidationError

from efsbroker.app.config import BrokerConfig
from efsbroker.control.lifecycle import LifecycleController, OperationStatus
from efsbroker.control.state import BrokerState
from efsbroker.core.domain import OperationType, PerformanceMode, Phase
from efsbroker.core.errors import (
    AsyncRequiredError,
    BindingConflictError,
    BindingNotFoundError,
    InstanceNotFoundError,
    InvalidParametersError,
    PlanNotUpdatableError,
    PreconditionError,
    RemoteError,
    UnknownPlanError,
    UnrecognizedOperationError,
)
from efsbroker.core.interfaces import FilesystemProvider
from efsbroker.core.logging_schema import LogEvent
from efsbroker.core.models import (
    BindDetails,
    Binding,
    BindingRecord,
    BindParameters,
    ProvisionDetails,
    Service,
    ServicePlan,
    SharedDevice,
    VolumeMount,
)

logger = logging.getLogger(__name__)

_MAX_IO_DESC = (
    "scales to higher levels of aggregate throughput and operations per second "
    "with a tradeoff of slightly higher latencies for most file operations"
)


class BrokerService:
    def __init__(
        self,
        state: BrokerState,
        provider: FilesystemProvider,
        controller: LifecycleController,
        config: BrokerConfig,
    ) -> None:
        self._state = state
        self._provider = provider
        self._controller = controller
        self._config = config

    # =========================================================================
    # Catalog
    # =========================================================================

    def catalog(self) -> list[Service]:
        return [
            Service(
                id=self._config.service_id,
                name=self._config.service_name,
                description="Local service docs: https://code.cloudfoundry.org/efs-volume-release/",
                bindable=True,
                plan_updateable=False,
                tags=["efs"],
                requires=["volume_mount"],
                plans=[
                    ServicePlan(
                        id=self._config.plan_id,
                        name=self._config.plan_name,
                        description=self._config.plan_desc,
                    ),
                    ServicePlan(
                        id=PerformanceMode.MAX_IO,
                        name=PerformanceMode.MAX_IO,
                        description=_MAX_IO_DESC,
                    ),
                ],
            )
        ]

    def _plan_ids(self) -> set[str]:
        return {plan.id for service in self.catalog() for plan in service.plans}

    # =========================================================================
    # Instances
    # =========================================================================

    async def provision(
        self, instance_id: str, details: ProvisionDetails, accepts_incomplete: bool
    ) -> OperationType:
        """Start provisioning an EFS volume.

        Raises:
            AsyncRequiredError: accepts_incomplete is false
            UnknownPlanError: plan_id not in the catalog
            InstanceConflictError, ConcurrencyError, RemoteError: see LifecycleController
        """
        if not accepts_incomplete:
            raise AsyncRequiredError()
        if details.plan_id not in self._plan_ids():
            raise UnknownPlanError(details.plan_id)
        return await self._controller.provision(instance_id, details)

    async def deprovision(self, instance_id: str, accepts_incomplete: bool) -> OperationType:
        if not accepts_incomplete:
            raise AsyncRequiredError()
        return await self._controller.deprovision(instance_id)

    async def update(self, instance_id: str) -> None:
        """Plans are not updatable."""
        async with self._state.guard():
            if instance_id not in self._state.instances:
                raise InstanceNotFoundError(f"instance {instance_id} does not exist", status_code=404)
        raise PlanNotUpdatableError()

    async def last_operation(self, instance_id: str, operation: str | None) -> OperationStatus:
        """Dispatch a status poll on the operation data returned at accept time.

        Raises:
            InstanceNotFoundError: Unknown instance (provision polls only)
            UnrecognizedOperationError: operation is neither provision nor deprovision
        """
        match operation:
            case OperationType.PROVISION:
                return await self._controller.poll_create_status(instance_id)
            case OperationType.DEPROVISION:
                return await self._controller.poll_destroy_status(instance_id)
            case _:
                raise UnrecognizedOperationError(operation)

    # =========================================================================
    # Bindings
    # =========================================================================

    async def bind(self, instance_id: str, binding_id: str, details: BindDetails) -> Binding:
        """Bind an app to an available instance.

        Raises:
            InstanceNotFoundError: Unknown instance (404)
            InvalidParametersError: Missing app_guid or unrecognized parameters
            BindingConflictError: Same binding id with different details
            PreconditionError: Instance is not available yet
        """
        if not details.app_guid:
            raise InvalidParametersError("app_guid is required")
        params = self._parse_bind_parameters(details)

        async with self._state.guard():
            instance = self._state.instances.get(instance_id)
            if instance is None:
                raise InstanceNotFoundError(
                    f"instance {instance_id} does not exist", status_code=404
                )
            existing = self._state.bindings.get(binding_id)
            if existing is not None and (
                existing.instance_id != instance_id or existing.details != details
            ):
                raise BindingConflictError(
                    f"binding {binding_id} already exists with different details"
                )
            if instance.phase != Phase.AVAILABLE:
                raise PreconditionError(
                    f"instance {instance_id} is not available (phase: {instance.phase})"
                )
            fs_id = instance.remote_id

        ip = await self._mount_target_ip(fs_id)

        async with self._state.guard():
            if instance_id not in self._state.instances:
                raise InstanceNotFoundError(
                    f"instance {instance_id} does not exist", status_code=404
                )
            if binding_id not in self._state.bindings:
                self._state.bindings[binding_id] = BindingRecord(
                    id=binding_id, instance_id=instance_id, details=details
                )
                await self._state.persist(binding_id=binding_id)
                logger.info(
                    "Binding created",
                    extra={
                        "event": LogEvent.STATE_CHANGED,
                        "instance_id": instance_id,
                        "binding_id": binding_id,
                        "app_guid": details.app_guid,
                    },
                )

        container_dir = params.mount or posixpath.join(self._config.container_dir, instance_id)
        return Binding(
            credentials={},
            volume_mounts=[
                VolumeMount(
                    driver=self._config.volume_driver,
                    container_dir=container_dir,
                    mode="r" if params.readonly else "rw",
                    device_type="shared",
                    device=SharedDevice(volume_id=instance_id, mount_config={"ip": ip}),
                )
            ],
        )

    async def unbind(self, instance_id: str, binding_id: str) -> None:
        async with self._state.guard():
            if instance_id not in self._state.instances:
                raise InstanceNotFoundError(f"instance {instance_id} does not exist")
            binding = self._state.bindings.get(binding_id)
            if binding is None or binding.instance_id != instance_id:
                raise BindingNotFoundError(f"binding {binding_id} does not exist")

            del self._state.bindings[binding_id]
            await self._state.persist(binding_id=binding_id)

        logger.info(
            "Binding removed",
            extra={
                "event": LogEvent.STATE_CHANGED,
                "instance_id": instance_id,
                "binding_id": binding_id,
            },
        )

    def _parse_bind_parameters(self, details: BindDetails) -> BindParameters:
        try:
            return BindParameters.model_validate(details.parameters or {})
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'parameters'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidParametersError(f"invalid bind parameters: {errors}") from e

    async def _mount_target_ip(self, fs_id: str | None) -> str:
        if fs_id is None:
            raise PreconditionError("instance has no file system")
        mount_targets = await self._provider.describe_mount_targets(fs_id)
        if not mount_targets or not mount_targets[0].ip_address:
            raise RemoteError(f"no mount target address for {fs_id}")
        return mount_targets[0].ip_address

"""LifecycleController - asynchronous EFS create/destroy workflows.

Foreground calls (provision, deprovision) validate and register intent
under the guard, then hand the long-running part to one asyncio.Task per
instance. Tasks poll the remote API, and write their terminal result back
through the guarded BrokerState, where status polls observe it.

Create: create_file_system (sync) → await fs available →
        create_mount_target → await mount target available → AVAILABLE
Destroy: delete first mount target → await gone →
         delete_file_system → await gone → record removed

Any step failure or the operation deadline marks the instance FAILED.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

from pydantic import BaseModel

from efsbroker.app.config import AwsConfig, LifecycleConfig
from efsbroker.app.logging import clear_trace_context, set_operation_context
from efsbroker.app.metrics.collector import (
    OPERATION_DURATION,
    OPERATION_TOTAL,
    REMOTE_CALL_FAILURES_TOTAL,
)
from efsbroker.control.reconciler import StatusReconciler
from efsbroker.control.state import BrokerState
from efsbroker.core.clock import Clock
from efsbroker.core.domain import (
    IN_FLIGHT_PHASES,
    FailureReason,
    LifeCycleState,
    OperationState,
    OperationType,
    Phase,
    plan_to_performance_mode,
    to_operation_state,
)
from efsbroker.core.errors import (
    ConcurrencyError,
    FileSystemNotFoundError,
    InstanceConflictError,
    InstanceNotFoundError,
    MountTargetNotFoundError,
    OperationTimeoutError,
    PreconditionError,
    RemoteError,
)
from efsbroker.core.interfaces import FilesystemProvider
from efsbroker.core.logging_schema import LogEvent
from efsbroker.core.models import ProvisionDetails, ResourceInstance, utc_now
from efsbroker.core.retryable import classify_error, with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnexpectedStateError(Exception):
    """Remote resource reached a lifecycle state the workflow cannot continue from."""

    def __init__(self, resource: str, state: str) -> None:
        self.resource = resource
        self.state = state
        super().__init__(f"{resource} entered unexpected state: {state}")


class OperationStatus(BaseModel):
    """last_operation snapshot."""

    state: OperationState
    description: str | None = None


class LifecycleController:
    """Owns the background task table and the create/destroy workflows."""

    def __init__(
        self,
        state: BrokerState,
        provider: FilesystemProvider,
        clock: Clock,
        aws: AwsConfig,
        config: LifecycleConfig,
    ) -> None:
        self._state = state
        self._provider = provider
        self._clock = clock
        self._aws = aws
        self._config = config
        self._reconciler = StatusReconciler(provider)
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def reconciler(self) -> StatusReconciler:
        return self._reconciler

    # =========================================================================
    # Foreground operations
    # =========================================================================

    async def provision(self, instance_id: str, details: ProvisionDetails) -> OperationType:
        """Accept a create request.

        The file system itself is created synchronously so that immediate
        API failures reach the caller; the rest runs in the background.

        Raises:
            InstanceConflictError: Same id with different details
            ConcurrencyError: Instance is being deprovisioned, or its file system
                is still being created
            RemoteError: create_file_system failed
        """
        async with self._state.guard():
            existing = self._state.instances.get(instance_id)
            if existing is not None:
                if existing.phase == Phase.DEPROVISIONING:
                    raise ConcurrencyError()
                if existing.details != details:
                    raise InstanceConflictError(
                        f"instance {instance_id} already exists with different details"
                    )
                if existing.phase == Phase.PROVISIONING and existing.remote_id is None:
                    # create_file_system still running in the foreground
                    raise ConcurrencyError()
                logger.info(
                    "Provision already accepted",
                    extra={
                        "event": LogEvent.OPERATION_ACCEPTED,
                        "instance_id": instance_id,
                        "phase": existing.phase,
                    },
                )
                return OperationType.PROVISION

            # Reserve the id so concurrent creates see it
            self._state.instances[instance_id] = ResourceInstance(id=instance_id, details=details)
            await self._state.persist(instance_id=instance_id)

        mode = plan_to_performance_mode(details.plan_id)
        try:
            fs_id = await self._retry(
                "create_file_system",
                lambda: self._provider.create_file_system(instance_id, mode),
            )
        except Exception as e:
            logger.error(
                "Failed to create file system",
                extra={
                    "event": LogEvent.OPERATION_FAILED,
                    "instance_id": instance_id,
                    "operation": OperationType.PROVISION,
                    "error": str(e),
                },
            )
            async with self._state.guard():
                self._state.instances.pop(instance_id, None)
                await self._state.persist(instance_id=instance_id)
            if isinstance(e, RemoteError):
                raise
            raise RemoteError(str(e)) from e

        async with self._state.guard():
            instance = self._state.instances[instance_id]
            instance.remote_id = fs_id
            instance.updated_at = utc_now()
            await self._state.persist(instance_id=instance_id)
            self._spawn(
                instance_id,
                OperationType.PROVISION,
                self._create_workflow(instance_id, fs_id),
            )

        logger.info(
            "Provision accepted",
            extra={
                "event": LogEvent.OPERATION_ACCEPTED,
                "instance_id": instance_id,
                "fs_id": fs_id,
                "performance_mode": mode,
            },
        )
        return OperationType.PROVISION

    async def deprovision(self, instance_id: str) -> OperationType:
        """Accept a destroy request.

        Raises:
            InstanceNotFoundError: Unknown instance id
            ConcurrencyError: A create is still in flight for this id
        """
        async with self._state.guard():
            instance = self._state.instances.get(instance_id)
            if instance is None:
                raise InstanceNotFoundError(f"instance {instance_id} does not exist")

            if self.has_active_task(instance_id):
                if instance.phase == Phase.DEPROVISIONING:
                    return OperationType.DEPROVISION
                raise ConcurrencyError()

            if instance.remote_id is None:
                if instance.phase == Phase.PROVISIONING:
                    # create_file_system still running in the foreground
                    raise ConcurrencyError()
                # Nothing was created remotely
                del self._state.instances[instance_id]
                await self._state.persist(instance_id=instance_id)
                logger.info(
                    "Removed instance without remote resources",
                    extra={"event": LogEvent.STATE_CHANGED, "instance_id": instance_id},
                )
                return OperationType.DEPROVISION

            self._set_phase(instance, Phase.DEPROVISIONING)
            await self._state.persist(instance_id=instance_id)
            self._spawn(
                instance_id,
                OperationType.DEPROVISION,
                self._destroy_workflow(instance_id, instance.remote_id),
            )

        logger.info(
            "Deprovision accepted",
            extra={
                "event": LogEvent.OPERATION_ACCEPTED,
                "instance_id": instance_id,
                "fs_id": instance.remote_id,
            },
        )
        return OperationType.DEPROVISION

    async def poll_create_status(self, instance_id: str) -> OperationStatus:
        """Status of a provision, observed from the remote API.

        Raises:
            InstanceNotFoundError: Unknown instance id
        """
        async with self._state.guard():
            instance = self._state.instances.get(instance_id)
            if instance is None:
                raise InstanceNotFoundError(f"instance {instance_id} does not exist")
            phase = instance.phase
            fs_id = instance.remote_id
            reason = instance.failure_reason

        if phase == Phase.FAILED:
            return OperationStatus(state=OperationState.FAILED, description=reason)
        if fs_id is None:
            return OperationStatus(state=OperationState.IN_PROGRESS)

        try:
            status = await self._reconciler.combined_status(fs_id)
        except RemoteError as e:
            logger.warning(
                "Failed to get provision status",
                extra={
                    "event": LogEvent.POLL_ERROR,
                    "instance_id": instance_id,
                    "fs_id": fs_id,
                    "error": str(e),
                },
            )
            return OperationStatus(state=OperationState.FAILED, description=e.message)

        return OperationStatus(state=to_operation_state(status))

    async def poll_destroy_status(self, instance_id: str) -> OperationStatus:
        """Status of a deprovision; an absent record means it succeeded."""
        async with self._state.guard():
            instance = self._state.instances.get(instance_id)
            if instance is None:
                return OperationStatus(state=OperationState.SUCCEEDED)
            if instance.phase == Phase.FAILED:
                return OperationStatus(
                    state=OperationState.FAILED, description=instance.failure_reason
                )
            return OperationStatus(state=OperationState.IN_PROGRESS)

    # =========================================================================
    # Task table
    # =========================================================================

    def has_active_task(self, instance_id: str) -> bool:
        task = self._tasks.get(instance_id)
        return task is not None and not task.done()

    def _spawn(
        self,
        instance_id: str,
        operation: OperationType,
        coro: Coroutine[Any, Any, None],
    ) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"{operation}-{instance_id}")
        self._tasks[instance_id] = task

        def _done(t: asyncio.Task) -> None:
            if self._tasks.get(instance_id) is t:
                del self._tasks[instance_id]

        task.add_done_callback(_done)
        return task

    async def resume(self) -> None:
        """Restart workflows for instances restored in an in-flight phase."""
        async with self._state.guard():
            for instance in list(self._state.instances.values()):
                if instance.phase not in IN_FLIGHT_PHASES:
                    continue
                if instance.phase == Phase.PROVISIONING:
                    if instance.remote_id is None:
                        self._fail(
                            instance,
                            FailureReason.INTERRUPTED,
                            "creation interrupted before the file system was created",
                        )
                        await self._state.persist(instance_id=instance.id)
                        continue
                    self._spawn(
                        instance.id,
                        OperationType.PROVISION,
                        self._create_workflow(instance.id, instance.remote_id),
                    )
                elif instance.remote_id:
                    self._spawn(
                        instance.id,
                        OperationType.DEPROVISION,
                        self._destroy_workflow(instance.id, instance.remote_id),
                    )
                else:
                    continue

                logger.info(
                    "Resumed operation",
                    extra={
                        "event": LogEvent.OPERATION_RESUMED,
                        "instance_id": instance.id,
                        "phase": instance.phase,
                    },
                )

    async def wait_for_pending(self) -> None:
        """Wait until every background task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding tasks. Records keep their in-flight phase."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # =========================================================================
    # Background workflows
    # =========================================================================

    async def _create_workflow(self, instance_id: str, fs_id: str) -> None:
        await self._run(
            instance_id,
            OperationType.PROVISION,
            lambda deadline: self._create_steps(instance_id, fs_id, deadline),
        )

    async def _destroy_workflow(self, instance_id: str, fs_id: str) -> None:
        await self._run(
            instance_id,
            OperationType.DEPROVISION,
            lambda deadline: self._destroy_steps(instance_id, fs_id, deadline),
        )

    async def _run(
        self,
        instance_id: str,
        operation: OperationType,
        steps: Callable[[float], Awaitable[None]],
    ) -> None:
        """Run workflow steps and record the terminal outcome."""
        set_operation_context(instance_id, operation)
        started = self._clock.monotonic()
        deadline = started + self._config.operation_timeout
        logger.info(
            "Operation started",
            extra={
                "event": LogEvent.OPERATION_STARTED,
                "instance_id": instance_id,
                "operation": operation,
            },
        )

        status = "failed"
        try:
            await steps(deadline)
            status = "success"
        except OperationTimeoutError as e:
            status = "timeout"
            logger.error(
                "Operation timed out",
                extra={
                    "event": LogEvent.OPERATION_TIMEOUT,
                    "instance_id": instance_id,
                    "operation": operation,
                    "timeout": self._config.operation_timeout,
                },
            )
            await self._mark_failed(instance_id, FailureReason.TIMEOUT, e.message)
        except PreconditionError as e:
            self._log_failure(instance_id, operation, e)
            await self._mark_failed(instance_id, FailureReason.PRECONDITION, e.message)
        except RemoteError as e:
            self._log_failure(instance_id, operation, e)
            await self._mark_failed(instance_id, FailureReason.REMOTE_ERROR, e.message)
        except UnexpectedStateError as e:
            self._log_failure(instance_id, operation, e)
            await self._mark_failed(instance_id, FailureReason.UNEXPECTED_STATE, str(e))
        except Exception as e:
            logger.exception(
                "Operation crashed",
                extra={
                    "event": LogEvent.OPERATION_FAILED,
                    "instance_id": instance_id,
                    "operation": operation,
                    "error_type": type(e).__name__,
                },
            )
            await self._mark_failed(instance_id, FailureReason.REMOTE_ERROR, str(e))
        finally:
            duration = self._clock.monotonic() - started
            OPERATION_DURATION.labels(operation=operation).observe(duration)
            clear_trace_context()

        OPERATION_TOTAL.labels(operation=operation, status=status).inc()
        if status == "success":
            logger.info(
                "Operation succeeded",
                extra={
                    "event": LogEvent.OPERATION_SUCCESS,
                    "instance_id": instance_id,
                    "operation": operation,
                    "duration_ms": duration * 1000,
                },
            )

    async def _create_steps(self, instance_id: str, fs_id: str, deadline: float) -> None:
        await self._await_file_system_available(fs_id, deadline)

        subnet_id = self._aws.subnet_ids[0] if self._aws.subnet_ids else None
        if subnet_id is None:
            raise PreconditionError("no subnet configured for mount targets")

        # A restored create may already have its mount target
        existing = await self._retry(
            "describe_mount_targets", lambda: self._provider.describe_mount_targets(fs_id)
        )
        if not existing:
            await self._retry(
                "create_mount_target",
                lambda: self._provider.create_mount_target(
                    fs_id, subnet_id, self._aws.security_groups or None
                ),
            )

        await self._await_mount_target_available(fs_id, deadline)

        async with self._state.guard():
            instance = self._state.instances.get(instance_id)
            if instance is None:
                return
            self._set_phase(instance, Phase.AVAILABLE)
            await self._state.persist(instance_id=instance_id)

    async def _destroy_steps(self, instance_id: str, fs_id: str, deadline: float) -> None:
        await self._delete_mount_target(fs_id, deadline)
        await self._delete_file_system(fs_id, deadline)

        async with self._state.guard():
            self._state.instances.pop(instance_id, None)
            for binding in self._state.bindings_for(instance_id):
                del self._state.bindings[binding.id]
                await self._state.persist(binding_id=binding.id)
            await self._state.persist(instance_id=instance_id)

        logger.info(
            "Instance removed",
            extra={"event": LogEvent.STATE_CHANGED, "instance_id": instance_id, "fs_id": fs_id},
        )

    # =========================================================================
    # Workflow steps
    # =========================================================================

    async def _await_file_system_available(self, fs_id: str, deadline: float) -> None:
        while True:
            self._check_deadline(deadline, f"file system {fs_id} did not become available")
            try:
                state = await self._provider.describe_file_system(fs_id)
            except RemoteError as e:
                self._log_poll_error(fs_id, "describe_file_system", e)
            else:
                if state == LifeCycleState.AVAILABLE:
                    return
                if state != LifeCycleState.CREATING:
                    raise UnexpectedStateError("file system", state)
            await self._clock.sleep(self._config.poll_interval)

    async def _await_mount_target_available(self, fs_id: str, deadline: float) -> None:
        while True:
            self._check_deadline(deadline, f"mount target for {fs_id} did not become available")
            try:
                state = await self._reconciler.combined_status(fs_id)
            except RemoteError as e:
                self._log_poll_error(fs_id, "combined_status", e)
            else:
                if state == LifeCycleState.AVAILABLE:
                    return
                if state != LifeCycleState.CREATING:
                    raise UnexpectedStateError("mount target", state)
            await self._clock.sleep(self._config.poll_interval)

    async def _delete_mount_target(self, fs_id: str, deadline: float) -> None:
        try:
            mount_targets = await self._retry(
                "describe_mount_targets", lambda: self._provider.describe_mount_targets(fs_id)
            )
        except FileSystemNotFoundError:
            logger.info("File system already gone", extra={"fs_id": fs_id})
            return
        if not mount_targets:
            logger.info("No mount targets to delete", extra={"fs_id": fs_id})
            return

        target = mount_targets[0]
        if target.lifecycle_state != LifeCycleState.AVAILABLE:
            raise PreconditionError(
                "invalid lifecycle transition, please wait until all mount targets are available"
            )
        if len(mount_targets) > 1:
            logger.warning(
                "Only the first mount target is deleted",
                extra={
                    "fs_id": fs_id,
                    "mount_target_id": target.mount_target_id,
                    "extra_mount_targets": [mt.mount_target_id for mt in mount_targets[1:]],
                },
            )

        try:
            await self._retry(
                "delete_mount_target",
                lambda: self._provider.delete_mount_target(target.mount_target_id),
            )
        except (MountTargetNotFoundError, FileSystemNotFoundError):
            return

        while True:
            self._check_deadline(deadline, f"mount target {target.mount_target_id} was not deleted")
            try:
                remaining = await self._provider.describe_mount_targets(fs_id)
            except FileSystemNotFoundError:
                return
            except RemoteError as e:
                self._log_poll_error(fs_id, "describe_mount_targets", e)
            else:
                current = next(
                    (mt for mt in remaining if mt.mount_target_id == target.mount_target_id),
                    None,
                )
                if current is None or current.lifecycle_state == LifeCycleState.DELETED:
                    return
            await self._clock.sleep(self._config.mount_poll_interval)

    async def _delete_file_system(self, fs_id: str, deadline: float) -> None:
        try:
            await self._retry(
                "delete_file_system", lambda: self._provider.delete_file_system(fs_id)
            )
        except FileSystemNotFoundError:
            return

        while True:
            self._check_deadline(deadline, f"file system {fs_id} was not deleted")
            try:
                state = await self._provider.describe_file_system(fs_id)
            except FileSystemNotFoundError:
                return
            except RemoteError as e:
                self._log_poll_error(fs_id, "describe_file_system", e)
            else:
                if state == LifeCycleState.DELETED:
                    return
            await self._clock.sleep(self._config.poll_interval)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _retry(self, call: str, coro_factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await with_retry(
                coro_factory,
                max_retries=self._config.retry_max_attempts,
                base_delay=self._config.retry_base_delay,
                max_delay=self._config.retry_max_delay,
                sleep=self._clock.sleep,
            )
        except Exception as e:
            REMOTE_CALL_FAILURES_TOTAL.labels(call=call, error_class=classify_error(e)).inc()
            raise

    def _check_deadline(self, deadline: float, message: str) -> None:
        if self._clock.monotonic() >= deadline:
            raise OperationTimeoutError(message)

    def _set_phase(self, instance: ResourceInstance, phase: Phase) -> None:
        old = instance.phase
        instance.phase = phase
        instance.failure_reason = None
        instance.updated_at = utc_now()
        logger.info(
            "Phase changed",
            extra={
                "event": LogEvent.STATE_CHANGED,
                "instance_id": instance.id,
                "old_phase": old,
                "new_phase": phase,
            },
        )

    def _fail(self, instance: ResourceInstance, reason: FailureReason, message: str) -> None:
        self._set_phase(instance, Phase.FAILED)
        instance.failure_reason = f"{reason}: {message}"

    async def _mark_failed(self, instance_id: str, reason: FailureReason, message: str) -> None:
        async with self._state.guard():
            instance = self._state.instances.get(instance_id)
            if instance is None:
                return
            self._fail(instance, reason, message)
            await self._state.persist(instance_id=instance_id)

    def _log_failure(self, instance_id: str, operation: OperationType, exc: Exception) -> None:
        logger.error(
            "Operation failed: %s",
            exc,
            extra={
                "event": LogEvent.OPERATION_FAILED,
                "instance_id": instance_id,
                "operation": operation,
                "error_type": type(exc).__name__,
                "error_class": classify_error(exc),
            },
        )

    def _log_poll_error(self, fs_id: str, call: str, exc: RemoteError) -> None:
        REMOTE_CALL_FAILURES_TOTAL.labels(call=call, error_class=classify_error(exc)).inc()
        logger.warning(
            "Status poll failed, retrying on next poll",
            extra={
                "event": LogEvent.POLL_ERROR,
                "fs_id": fs_id,
                "call": call,
                "error": str(exc),
            },
        )

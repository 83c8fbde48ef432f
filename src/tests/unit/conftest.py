"""Shared fixtures for broker unit tests."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from efsbroker.adapters.store import FileStateStore
from efsbroker.app.config import AwsConfig, BrokerConfig, LifecycleConfig, Settings
from efsbroker.control.lifecycle import LifecycleController
from efsbroker.control.state import BrokerState
from efsbroker.core.clock import Clock
from efsbroker.core.domain import Phase
from efsbroker.core.errors import FileSystemNotFoundError, MountTargetNotFoundError
from efsbroker.core.interfaces import FilesystemProvider, MountTargetInfo
from efsbroker.core.models import ProvisionDetails, ResourceInstance


class FakeClock(Clock):
    """Deterministic clock: sleep advances time and yields once to the loop."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeRemote:
    """Mutable remote EFS state behind the provider mock.

    fs_state None means the file system does not exist.
    """

    def __init__(self) -> None:
        self.fs_state: str | None = "creating"
        self.mount_targets: list[MountTargetInfo] = []

    def add_mount_target(self, state: str = "available") -> MountTargetInfo:
        mt = MountTargetInfo(
            mount_target_id=f"fsmt-{len(self.mount_targets) + 1}",
            lifecycle_state=state,
            ip_address="10.0.0.5",
            subnet_id="subnet-1",
        )
        self.mount_targets.append(mt)
        return mt


async def settle(steps: int = 10) -> None:
    """Let background tasks run a few event loop iterations."""
    for _ in range(steps):
        await asyncio.sleep(0)


def make_details(plan_id: str = "generalPurpose", **kwargs) -> ProvisionDetails:
    return ProvisionDetails(
        service_id="efs-service-guid",
        plan_id=plan_id,
        organization_guid=kwargs.pop("organization_guid", "org-1"),
        space_guid=kwargs.pop("space_guid", "space-1"),
        **kwargs,
    )


def make_instance(
    id: str = "fs-1",
    phase: Phase = Phase.AVAILABLE,
    remote_id: str | None = "fs-0123abcd",
) -> ResourceInstance:
    return ResourceInstance(id=id, details=make_details(), remote_id=remote_id, phase=phase)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def provider(remote: FakeRemote) -> AsyncMock:
    """FilesystemProvider mock backed by FakeRemote.

    Raises the same not-found errors AwsEfsProvider translates from EFS.
    """
    provider = AsyncMock(spec=FilesystemProvider)

    def describe_file_system(fs_id: str) -> str:
        if remote.fs_state is None:
            raise FileSystemNotFoundError(fs_id)
        return remote.fs_state

    def describe_mount_targets(fs_id: str) -> list[MountTargetInfo]:
        if remote.fs_state is None:
            raise FileSystemNotFoundError(fs_id)
        return list(remote.mount_targets)

    def create_mount_target(fs_id: str, subnet_id: str, security_groups=None) -> str:
        if remote.fs_state is None:
            raise FileSystemNotFoundError(fs_id)
        return remote.add_mount_target("creating").mount_target_id

    def delete_mount_target(mount_target_id: str) -> None:
        if all(mt.mount_target_id != mount_target_id for mt in remote.mount_targets):
            raise MountTargetNotFoundError(mount_target_id)
        remote.mount_targets = [
            mt for mt in remote.mount_targets if mt.mount_target_id != mount_target_id
        ]

    def delete_file_system(fs_id: str) -> None:
        if remote.fs_state is None:
            raise FileSystemNotFoundError(fs_id)
        remote.fs_state = "deleting"

    provider.create_file_system.return_value = "fs-0123abcd"
    provider.describe_file_system.side_effect = describe_file_system
    provider.describe_mount_targets.side_effect = describe_mount_targets
    provider.create_mount_target.side_effect = create_mount_target
    provider.delete_mount_target.side_effect = delete_mount_target
    provider.delete_file_system.side_effect = delete_file_system
    return provider


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        broker=BrokerConfig(data_dir=str(tmp_path)),
        aws=AwsConfig(subnet_ids=["subnet-1", "subnet-2"], security_groups=["sg-1"]),
        lifecycle=LifecycleConfig(
            poll_interval=5.0,
            mount_poll_interval=0.1,
            operation_timeout=3600.0,
            retry_max_attempts=2,
            retry_base_delay=0.01,
            retry_max_delay=0.1,
        ),
    )


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "efsvolume-services.json"


@pytest.fixture
def store(store_path: Path) -> FileStateStore:
    return FileStateStore(store_path)


@pytest.fixture
async def state(store: FileStateStore) -> BrokerState:
    return await BrokerState.load(store)


@pytest.fixture
async def controller(
    state: BrokerState, provider: AsyncMock, clock: FakeClock, settings: Settings
) -> LifecycleController:
    controller = LifecycleController(state, provider, clock, settings.aws, settings.lifecycle)
    yield controller
    await controller.shutdown()


# Helper fixtures


@pytest.fixture
def run_tasks():
    return settle


@pytest.fixture
def details_factory():
    return make_details


@pytest.fixture
def instance_factory():
    return make_instance

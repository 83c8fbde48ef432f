"""Tests for AwsEfsProvider with a mocked aioboto3 session."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from efsbroker.adapters.efs import AwsEfsProvider
from efsbroker.app.config import AwsConfig
from efsbroker.core.domain import PerformanceMode
from efsbroker.core.errors import (
    FileSystemNotFoundError,
    MountTargetNotFoundError,
    RemoteError,
)
from efsbroker.infra.aws import EfsClientFactory


def _client_error(code: str, message: str = "test error", op: str = "Test") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, op)


@pytest.fixture
def efs_client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def session(efs_client: AsyncMock) -> MagicMock:
    session = MagicMock()
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=efs_client)
    ctx.__aexit__ = AsyncMock(return_value=False)
    session.client.return_value = ctx
    return session


@pytest.fixture
def aws_provider(session: MagicMock) -> AwsEfsProvider:
    config = AwsConfig(region="us-west-2", endpoint_url="http://localhost:5000")
    return AwsEfsProvider(EfsClientFactory(config, session=session))


class TestClientFactory:
    async def test_client_uses_config(self, aws_provider, session, efs_client) -> None:
        efs_client.describe_mount_targets.return_value = {"MountTargets": []}

        await aws_provider.describe_mount_targets("fs-1")

        args, kwargs = session.client.call_args
        assert args == ("efs",)
        assert kwargs["region_name"] == "us-west-2"
        assert kwargs["endpoint_url"] == "http://localhost:5000"
        assert kwargs["config"].retries["max_attempts"] == 1


class TestFileSystems:
    async def test_create(self, aws_provider, efs_client) -> None:
        efs_client.create_file_system.return_value = {"FileSystemId": "fs-0123abcd"}

        fs_id = await aws_provider.create_file_system("instance-1", PerformanceMode.MAX_IO)

        assert fs_id == "fs-0123abcd"
        efs_client.create_file_system.assert_awaited_once_with(
            CreationToken="instance-1", PerformanceMode="maxIO"
        )

    async def test_describe_returns_lifecycle_state(self, aws_provider, efs_client) -> None:
        efs_client.describe_file_systems.return_value = {
            "FileSystems": [{"FileSystemId": "fs-1", "LifeCycleState": "available"}]
        }

        assert await aws_provider.describe_file_system("fs-1") == "available"

    @pytest.mark.parametrize(
        "payload",
        [
            {"FileSystems": []},
            {"FileSystems": [{"LifeCycleState": "available"}, {"LifeCycleState": "creating"}]},
            {"FileSystems": [{"FileSystemId": "fs-1"}]},
        ],
    )
    async def test_describe_unexpected_payload(self, aws_provider, efs_client, payload) -> None:
        efs_client.describe_file_systems.return_value = payload

        with pytest.raises(RemoteError):
            await aws_provider.describe_file_system("fs-1")

    async def test_not_found_is_translated(self, aws_provider, efs_client) -> None:
        efs_client.describe_file_systems.side_effect = _client_error("FileSystemNotFound")

        with pytest.raises(FileSystemNotFoundError) as exc_info:
            await aws_provider.describe_file_system("fs-1")

        assert exc_info.value.fs_id == "fs-1"

    async def test_does_not_exist_message_is_translated(self, aws_provider, efs_client) -> None:
        efs_client.delete_file_system.side_effect = _client_error(
            "BadRequest", message="File system 'fs-1' does not exist."
        )

        with pytest.raises(FileSystemNotFoundError):
            await aws_provider.delete_file_system("fs-1")

    async def test_throttling_is_retryable(self, aws_provider, efs_client) -> None:
        efs_client.delete_file_system.side_effect = _client_error("ThrottlingException")

        with pytest.raises(RemoteError) as exc_info:
            await aws_provider.delete_file_system("fs-1")

        assert exc_info.value.retryable is True
        assert exc_info.value.remote_code == "ThrottlingException"

    async def test_in_use_is_permanent(self, aws_provider, efs_client) -> None:
        efs_client.delete_file_system.side_effect = _client_error("FileSystemInUse")

        with pytest.raises(RemoteError) as exc_info:
            await aws_provider.delete_file_system("fs-1")

        assert exc_info.value.retryable is False
        assert not isinstance(exc_info.value, FileSystemNotFoundError)

    async def test_connection_error_is_retryable(self, aws_provider, efs_client) -> None:
        efs_client.describe_file_systems.side_effect = EndpointConnectionError(
            endpoint_url="http://localhost:5000"
        )

        with pytest.raises(RemoteError) as exc_info:
            await aws_provider.describe_file_system("fs-1")

        assert exc_info.value.retryable is True


class TestMountTargets:
    async def test_create_with_security_groups(self, aws_provider, efs_client) -> None:
        efs_client.create_mount_target.return_value = {"MountTargetId": "fsmt-1"}

        mt_id = await aws_provider.create_mount_target("fs-1", "subnet-1", ["sg-1"])

        assert mt_id == "fsmt-1"
        efs_client.create_mount_target.assert_awaited_once_with(
            FileSystemId="fs-1", SubnetId="subnet-1", SecurityGroups=["sg-1"]
        )

    async def test_create_without_security_groups(self, aws_provider, efs_client) -> None:
        efs_client.create_mount_target.return_value = {"MountTargetId": "fsmt-1"}

        await aws_provider.create_mount_target("fs-1", "subnet-1")

        efs_client.create_mount_target.assert_awaited_once_with(
            FileSystemId="fs-1", SubnetId="subnet-1"
        )

    async def test_describe_keeps_remote_order(self, aws_provider, efs_client) -> None:
        efs_client.describe_mount_targets.return_value = {
            "MountTargets": [
                {
                    "MountTargetId": "fsmt-2",
                    "LifeCycleState": "creating",
                    "IpAddress": "10.0.0.6",
                    "SubnetId": "subnet-1",
                },
                {"MountTargetId": "fsmt-1", "LifeCycleState": "available"},
            ]
        }

        targets = await aws_provider.describe_mount_targets("fs-1")

        assert [t.mount_target_id for t in targets] == ["fsmt-2", "fsmt-1"]
        assert targets[0].ip_address == "10.0.0.6"
        assert targets[1].ip_address is None

    async def test_delete_not_found_is_translated(self, aws_provider, efs_client) -> None:
        efs_client.delete_mount_target.side_effect = _client_error("MountTargetNotFound")

        with pytest.raises(MountTargetNotFoundError):
            await aws_provider.delete_mount_target("fsmt-1")

        efs_client.delete_mount_target.assert_awaited_once_with(MountTargetId="fsmt-1")

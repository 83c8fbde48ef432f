"""AWS EFS filesystem provider.

Translates botocore ClientErrors into RemoteError subclasses so the
lifecycle controller never has to look at raw AWS error payloads.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from botocore.exceptions import BotoCoreError, ClientError

from efsbroker.core.domain import PerformanceMode
from efsbroker.core.errors import (
    FileSystemNotFoundError,
    MountTargetNotFoundError,
    RemoteError,
)
from efsbroker.core.interfaces import FilesystemProvider, MountTargetInfo
from efsbroker.core.logging_schema import LogEvent
from efsbroker.core.retryable import BOTOCORE_RETRYABLE, client_error_code, is_efs_retryable
from efsbroker.infra.aws import EfsClientFactory

logger = logging.getLogger(__name__)


def _is_does_not_exist(exc: ClientError) -> bool:
    message = exc.response.get("Error", {}).get("Message", "")
    return "does not exist" in message


class AwsEfsProvider(FilesystemProvider):
    """EFS-backed filesystem provider."""

    def __init__(self, clients: EfsClientFactory) -> None:
        self._clients = clients

    @asynccontextmanager
    async def _call(
        self, operation: str, fs_id: str | None = None, mount_target_id: str | None = None
    ) -> AsyncIterator:
        """Open a client and translate botocore errors for one API call."""
        try:
            async with self._clients.client() as efs:
                yield efs
        except ClientError as e:
            code = client_error_code(e)
            logger.warning(
                "EFS call failed",
                extra={
                    "event": LogEvent.REMOTE_ERROR,
                    "operation": operation,
                    "fs_id": fs_id,
                    "remote_code": code,
                    "error": str(e),
                },
            )
            if fs_id and (code == "FileSystemNotFound" or _is_does_not_exist(e)):
                raise FileSystemNotFoundError(fs_id, str(e)) from e
            if mount_target_id and code == "MountTargetNotFound":
                raise MountTargetNotFoundError(mount_target_id, str(e)) from e
            raise RemoteError(str(e), remote_code=code, retryable=is_efs_retryable(e)) from e
        except BotoCoreError as e:
            logger.warning(
                "EFS call failed",
                extra={
                    "event": LogEvent.REMOTE_ERROR,
                    "operation": operation,
                    "fs_id": fs_id,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            raise RemoteError(
                str(e),
                remote_code=type(e).__name__,
                retryable=isinstance(e, BOTOCORE_RETRYABLE),
            ) from e

    async def create_file_system(
        self, creation_token: str, performance_mode: PerformanceMode
    ) -> str:
        async with self._call("create_file_system") as efs:
            resp = await efs.create_file_system(
                CreationToken=creation_token,
                PerformanceMode=performance_mode.value,
            )
        fs_id = resp["FileSystemId"]
        logger.info(
            "File system created",
            extra={
                "event": LogEvent.REMOTE_CALL,
                "operation": "create_file_system",
                "fs_id": fs_id,
                "performance_mode": performance_mode.value,
            },
        )
        return fs_id

    async def describe_file_system(self, fs_id: str) -> str:
        async with self._call("describe_file_systems", fs_id=fs_id) as efs:
            resp = await efs.describe_file_systems(FileSystemId=fs_id)

        file_systems = resp.get("FileSystems", [])
        if len(file_systems) != 1:
            raise RemoteError(
                f"AWS returned an unexpected number of filesystems: {len(file_systems)}"
            )
        state = file_systems[0].get("LifeCycleState")
        if not state:
            raise RemoteError("AWS returned an unexpected filesystem state")
        return state

    async def delete_file_system(self, fs_id: str) -> None:
        async with self._call("delete_file_system", fs_id=fs_id) as efs:
            await efs.delete_file_system(FileSystemId=fs_id)
        logger.info(
            "File system deletion requested",
            extra={"event": LogEvent.REMOTE_CALL, "operation": "delete_file_system", "fs_id": fs_id},
        )

    async def create_mount_target(
        self,
        fs_id: str,
        subnet_id: str,
        security_groups: list[str] | None = None,
    ) -> str:
        kwargs: dict = {"FileSystemId": fs_id, "SubnetId": subnet_id}
        if security_groups:
            kwargs["SecurityGroups"] = security_groups

        async with self._call("create_mount_target", fs_id=fs_id) as efs:
            resp = await efs.create_mount_target(**kwargs)

        mount_target_id = resp["MountTargetId"]
        logger.info(
            "Mount target created",
            extra={
                "event": LogEvent.REMOTE_CALL,
                "operation": "create_mount_target",
                "fs_id": fs_id,
                "mount_target_id": mount_target_id,
                "subnet_id": subnet_id,
            },
        )
        return mount_target_id

    async def describe_mount_targets(self, fs_id: str) -> list[MountTargetInfo]:
        async with self._call("describe_mount_targets", fs_id=fs_id) as efs:
            resp = await efs.describe_mount_targets(FileSystemId=fs_id)

        return [
            MountTargetInfo(
                mount_target_id=mt["MountTargetId"],
                lifecycle_state=mt["LifeCycleState"],
                ip_address=mt.get("IpAddress"),
                subnet_id=mt.get("SubnetId"),
            )
            for mt in resp.get("MountTargets", [])
        ]

    async def delete_mount_target(self, mount_target_id: str) -> None:
        async with self._call("delete_mount_target", mount_target_id=mount_target_id) as efs:
            await efs.delete_mount_target(MountTargetId=mount_target_id)
        logger.info(
            "Mount target deletion requested",
            extra={
                "event": LogEvent.REMOTE_CALL,
                "operation": "delete_mount_target",
                "mount_target_id": mount_target_id,
            },
        )

"""Filesystem provider interface for remote EFS operations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from efsbroker.core.domain.instance import PerformanceMode


@dataclass
class MountTargetInfo:
    """Mount target observation result."""

    mount_target_id: str
    lifecycle_state: str  # creating, available, deleting, deleted, ...
    ip_address: str | None = None
    subnet_id: str | None = None


class FilesystemProvider(ABC):
    """Interface for remote file system operations.

    Implementations: AwsEfsProvider

    Errors are raised as RemoteError subclasses:
    - FileSystemNotFoundError when the file system does not exist
    - MountTargetNotFoundError when the mount target does not exist
    - RemoteError(retryable=...) for everything else
    """

    @abstractmethod
    async def create_file_system(
        self, creation_token: str, performance_mode: PerformanceMode
    ) -> str:
        """Create a file system.

        Args:
            creation_token: Idempotency token (the service instance id)
            performance_mode: EFS performance mode

        Returns:
            Remote file system id
        """
        ...

    @abstractmethod
    async def describe_file_system(self, fs_id: str) -> str:
        """Return the file system LifeCycleState.

        Raises:
            FileSystemNotFoundError: If the file system does not exist
        """
        ...

    @abstractmethod
    async def delete_file_system(self, fs_id: str) -> None:
        """Delete a file system."""
        ...

    @abstractmethod
    async def create_mount_target(
        self,
        fs_id: str,
        subnet_id: str,
        security_groups: list[str] | None = None,
    ) -> str:
        """Create a mount target in the given subnet.

        Returns:
            Remote mount target id
        """
        ...

    @abstractmethod
    async def describe_mount_targets(self, fs_id: str) -> list[MountTargetInfo]:
        """List mount targets of a file system, in remote order."""
        ...

    @abstractmethod
    async def delete_mount_target(self, mount_target_id: str) -> None:
        """Delete a mount target."""
        ...

"""StatusReconciler - combined file system + mount target status."""

import logging

from efsbroker.core.domain import LifeCycleState
from efsbroker.core.errors import NoMountTargetsError
from efsbroker.core.interfaces import FilesystemProvider

logger = logging.getLogger(__name__)


class StatusReconciler:
    """Reduces file system and mount target states to one lifecycle state.

    The file system must be available before its mount target state is
    considered. Only the first mount target counts.
    """

    def __init__(self, provider: FilesystemProvider) -> None:
        self._provider = provider

    async def combined_status(self, fs_id: str) -> str:
        """Return the effective lifecycle state of a provisioned volume.

        Raises:
            RemoteError: If either describe call fails
        """
        fs_state = await self._provider.describe_file_system(fs_id)
        if fs_state != LifeCycleState.AVAILABLE:
            return fs_state

        try:
            return await self.mount_target_status(fs_id)
        except NoMountTargetsError:
            return LifeCycleState.CREATING

    async def mount_target_status(self, fs_id: str) -> str:
        """Lifecycle state of the first mount target.

        Raises:
            NoMountTargetsError: If the file system has no mount targets
        """
        mount_targets = await self._provider.describe_mount_targets(fs_id)
        if not mount_targets:
            raise NoMountTargetsError(fs_id)
        return mount_targets[0].lifecycle_state

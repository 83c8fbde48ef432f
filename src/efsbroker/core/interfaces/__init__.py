"""Core interfaces for the broker."""

from efsbroker.core.interfaces.filesystem import FilesystemProvider, MountTargetInfo
from efsbroker.core.interfaces.store import StateStore

__all__ = [
    # Remote file system API
    "FilesystemProvider",
    "MountTargetInfo",
    # Persistence
    "StateStore",
]

"""Adapters module - infrastructure implementations."""

from efsbroker.adapters.efs import AwsEfsProvider
from efsbroker.adapters.store import FileStateStore, SqlStateStore, create_store

__all__ = [
    "AwsEfsProvider",
    "FileStateStore",
    "SqlStateStore",
    "create_store",
]

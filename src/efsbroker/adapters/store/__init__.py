"""State store implementations."""

from pathlib import Path

from efsbroker.adapters.store.file import FileStateStore
from efsbroker.adapters.store.sql import SqlStateStore
from efsbroker.app.config import Settings
from efsbroker.core.interfaces import StateStore
from efsbroker.infra.database import create_engine


def create_store(settings: Settings) -> StateStore:
    """Pick the state store backend from settings.

    STORE_DATABASE_URL set: SqlStateStore
    otherwise: FileStateStore at {data_dir}/{service_name}-services.json
    """
    if settings.store.database_url:
        return SqlStateStore(create_engine(settings.store))

    file_name = settings.store.file_name or f"{settings.broker.service_name}-services.json"
    return FileStateStore(Path(settings.broker.data_dir) / file_name)


__all__ = ["FileStateStore", "SqlStateStore", "create_store"]

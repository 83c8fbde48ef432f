"""Infrastructure connections (EFS API, database)."""

from efsbroker.infra.aws import EfsClientFactory
from efsbroker.infra.database import close_db, create_engine, init_db
from efsbroker.infra.models import ServiceBindingRow, ServiceInstanceRow

__all__ = [
    # AWS
    "EfsClientFactory",
    # DB
    "create_engine",
    "init_db",
    "close_db",
    # Tables
    "ServiceInstanceRow",
    "ServiceBindingRow",
]

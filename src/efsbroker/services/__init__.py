"""Services module."""

from efsbroker.services.broker_service import BrokerService

__all__ = ["BrokerService"]

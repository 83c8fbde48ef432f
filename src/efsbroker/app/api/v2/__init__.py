"""API v2 module (Open Service Broker)."""

from efsbroker.app.api.v2.broker import router as broker_router

__all__ = ["broker_router"]

"""Broker context: every long-lived collaborator, built once per app.

The context is stored on app.state and handed to routes through
dependencies, so nothing in the broker is a module-level singleton.
"""

from dataclasses import dataclass

from fastapi import Request

from efsbroker.adapters.efs import AwsEfsProvider
from efsbroker.adapters.store import create_store
from efsbroker.app.config import Settings
from efsbroker.control.lifecycle import LifecycleController
from efsbroker.control.state import BrokerState
from efsbroker.core.clock import Clock, SystemClock
from efsbroker.core.interfaces import FilesystemProvider, StateStore
from efsbroker.infra.aws import EfsClientFactory
from efsbroker.services.broker_service import BrokerService


@dataclass
class BrokerContext:
    settings: Settings
    store: StateStore
    provider: FilesystemProvider
    clock: Clock
    state: BrokerState
    controller: LifecycleController
    service: BrokerService


async def build_context(
    settings: Settings,
    store: StateStore | None = None,
    provider: FilesystemProvider | None = None,
    clock: Clock | None = None,
) -> BrokerContext:
    """Initialize the store, restore state and wire the broker together.

    Raises:
        StateStoreError: If the saved state cannot be read
    """
    store = store or create_store(settings)
    provider = provider or AwsEfsProvider(EfsClientFactory(settings.aws))
    clock = clock or SystemClock()

    await store.init()
    state = await BrokerState.load(store)
    controller = LifecycleController(state, provider, clock, settings.aws, settings.lifecycle)
    service = BrokerService(state, provider, controller, settings.broker)
    return BrokerContext(
        settings=settings,
        store=store,
        provider=provider,
        clock=clock,
        state=state,
        controller=controller,
        service=service,
    )


def get_context(request: Request) -> BrokerContext:
    return request.app.state.context


def get_service(request: Request) -> BrokerService:
    return get_context(request).service

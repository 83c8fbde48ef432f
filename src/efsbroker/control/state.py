"""Guarded broker state.

All reads and writes of instances and bindings go through one asyncio.Lock.
Remote calls and sleeps must never happen while the guard is held.

Usage:
    async with state.guard():
        state.instances[instance_id] = instance
        await state.persist(instance_id=instance_id)
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from efsbroker.app.metrics.collector import PERSIST_FAILURES_TOTAL
from efsbroker.core.interfaces import StateStore
from efsbroker.core.logging_schema import LogEvent
from efsbroker.core.models import BindingRecord, PersistedState, ResourceInstance

logger = logging.getLogger(__name__)


class BrokerState:
    def __init__(self, store: StateStore, initial: PersistedState | None = None) -> None:
        self._store = store
        self._lock = asyncio.Lock()
        self._state = initial or PersistedState()

    @classmethod
    async def load(cls, store: StateStore) -> "BrokerState":
        """Build state from the last snapshot in the store.

        Raises:
            StateStoreError: If the stored snapshot cannot be read
        """
        return cls(store, await store.restore())

    @asynccontextmanager
    async def guard(self) -> AsyncIterator["BrokerState"]:
        async with self._lock:
            yield self

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def instances(self) -> dict[str, ResourceInstance]:
        return self._state.instances

    @property
    def bindings(self) -> dict[str, BindingRecord]:
        return self._state.bindings

    def snapshot(self) -> PersistedState:
        """Deep copy of the current state."""
        return self._state.model_copy(deep=True)

    def bindings_for(self, instance_id: str) -> list[BindingRecord]:
        return [b for b in self._state.bindings.values() if b.instance_id == instance_id]

    async def persist(
        self, instance_id: str | None = None, binding_id: str | None = None
    ) -> None:
        """Save the state after a mutation. Call with the guard held.

        Failures are logged and counted; the in-memory state stays
        authoritative until the next successful save.
        """
        try:
            await self._store.save(self._state, instance_id=instance_id, binding_id=binding_id)
        except Exception as e:
            PERSIST_FAILURES_TOTAL.inc()
            logger.exception(
                "Failed to persist broker state",
                extra={
                    "event": LogEvent.PERSIST_FAILED,
                    "instance_id": instance_id,
                    "binding_id": binding_id,
                    "error_type": type(e).__name__,
                },
            )

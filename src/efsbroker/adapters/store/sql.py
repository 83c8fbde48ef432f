"""SQL state store (PostgreSQL via asyncpg, SQLite via aiosqlite).

Only the changed instance or binding row is written on save: the row is
replaced when the id is still in the state and deleted when it is gone.
"""

import logging

from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlmodel import select

from efsbroker.core.errors import StateStoreError
from efsbroker.core.interfaces import StateStore
from efsbroker.core.logging_schema import LogEvent
from efsbroker.core.models import BindingRecord, PersistedState, ResourceInstance
from efsbroker.infra.database import close_db, init_db
from efsbroker.infra.models import ServiceBindingRow, ServiceInstanceRow

logger = logging.getLogger(__name__)


class SqlStateStore(StateStore):
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def init(self) -> None:
        await init_db(self._engine)

    async def restore(self) -> PersistedState:
        state = PersistedState()
        try:
            async with AsyncSession(self._engine) as session:
                instance_rows = (await session.execute(select(ServiceInstanceRow))).scalars().all()
                binding_rows = (await session.execute(select(ServiceBindingRow))).scalars().all()
        except SQLAlchemyError as e:
            raise StateStoreError(f"failed to read state: {e}") from e

        try:
            for row in instance_rows:
                state.instances[row.id] = ResourceInstance.model_validate_json(row.value)
            for row in binding_rows:
                state.bindings[row.id] = BindingRecord.model_validate_json(row.value)
        except ValidationError as e:
            raise StateStoreError(f"corrupt state row: {e}") from e

        logger.info(
            "State restored",
            extra={
                "event": LogEvent.STATE_RESTORED,
                "instances": len(state.instances),
                "bindings": len(state.bindings),
            },
        )
        return state

    async def save(
        self,
        state: PersistedState,
        instance_id: str | None = None,
        binding_id: str | None = None,
    ) -> None:
        async with AsyncSession(self._engine) as session:
            if instance_id is not None:
                await session.execute(
                    delete(ServiceInstanceRow).where(ServiceInstanceRow.id == instance_id)
                )
                instance = state.instances.get(instance_id)
                if instance is not None:
                    session.add(
                        ServiceInstanceRow(id=instance_id, value=instance.model_dump_json())
                    )

            if binding_id is not None:
                await session.execute(
                    delete(ServiceBindingRow).where(ServiceBindingRow.id == binding_id)
                )
                binding = state.bindings.get(binding_id)
                if binding is not None:
                    session.add(
                        ServiceBindingRow(id=binding_id, value=binding.model_dump_json())
                    )

            # Bindings removed along with their instance
            if instance_id is not None and instance_id not in state.instances:
                stale = (
                    await session.execute(select(ServiceBindingRow))
                ).scalars().all()
                for row in stale:
                    if row.id not in state.bindings:
                        await session.delete(row)

            await session.commit()

        logger.debug(
            "State saved",
            extra={
                "event": LogEvent.STATE_SAVED,
                "instance_id": instance_id,
                "binding_id": binding_id,
            },
        )

    async def cleanup(self) -> None:
        await close_db(self._engine)

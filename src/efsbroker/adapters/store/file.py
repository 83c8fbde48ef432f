"""JSON file state store.

The whole state is rewritten on every save. Writes go to a temporary
file first and are moved into place with os.replace, so a crash never
leaves a half-written state file behind.
"""

import asyncio
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from efsbroker.core.errors import StateStoreError
from efsbroker.core.interfaces import StateStore
from efsbroker.core.logging_schema import LogEvent
from efsbroker.core.models import PersistedState

logger = logging.getLogger(__name__)


class FileStateStore(StateStore):
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def init(self) -> None:
        await asyncio.to_thread(self._path.parent.mkdir, parents=True, exist_ok=True)

    async def restore(self) -> PersistedState:
        try:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            logger.info(
                "No state file found, starting empty",
                extra={"event": LogEvent.STATE_RESTORED, "path": str(self._path)},
            )
            return PersistedState()
        except OSError as e:
            raise StateStoreError(f"failed to read {self._path}: {e}") from e

        try:
            state = PersistedState.model_validate_json(raw)
        except ValidationError as e:
            raise StateStoreError(f"corrupt state file {self._path}: {e}") from e

        logger.info(
            "State restored",
            extra={
                "event": LogEvent.STATE_RESTORED,
                "path": str(self._path),
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
        data = state.model_dump_json(indent=2)
        await asyncio.to_thread(self._write, data)
        logger.debug(
            "State saved",
            extra={
                "event": LogEvent.STATE_SAVED,
                "instance_id": instance_id,
                "binding_id": binding_id,
            },
        )

    async def cleanup(self) -> None:
        return None

    def _write(self, data: str) -> None:
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(data, encoding="utf-8")
        os.replace(tmp, self._path)

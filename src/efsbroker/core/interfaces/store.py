"""State store interface for broker persistence."""

from abc import ABC, abstractmethod

from efsbroker.core.models import PersistedState


class StateStore(ABC):
    """Durable record of instances and bindings.

    Implementations: FileStateStore, SqlStateStore

    Stores never mutate the state they are given; they only
    serialize it (save) or rebuild it (restore).
    """

    async def init(self) -> None:
        """Prepare the backend (create tables, directories). Default: no-op."""
        return None

    @abstractmethod
    async def restore(self) -> PersistedState:
        """Load the last saved snapshot.

        Returns:
            PersistedState (empty if nothing was saved yet)

        Raises:
            StateStoreError: If saved data exists but cannot be read
        """
        ...

    @abstractmethod
    async def save(
        self,
        state: PersistedState,
        instance_id: str | None = None,
        binding_id: str | None = None,
    ) -> None:
        """Persist the state after a mutation.

        Args:
            state: Full current state
            instance_id: Instance that changed (added, updated or removed)
            binding_id: Binding that changed (added or removed)
        """
        ...

    @abstractmethod
    async def cleanup(self) -> None:
        """Release backend resources."""
        ...

"""Clock abstraction for polling loops and deadlines.

Lifecycle workflows never call asyncio.sleep or time.monotonic directly,
so tests can drive them with a fake clock instead of real time.
"""

import asyncio
import time
from abc import ABC, abstractmethod


class Clock(ABC):
    @abstractmethod
    def monotonic(self) -> float:
        """Seconds from an arbitrary, non-decreasing origin."""
        ...

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock(Clock):
    """Real time."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

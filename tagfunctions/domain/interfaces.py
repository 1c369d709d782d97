from __future__ import annotations
from datetime import datetime
from typing import Iterable, Protocol, Sequence, runtime_checkable

from .models import Reading


@runtime_checkable
class ReadingStore(Protocol):
    """Synchronous, read-only view of a task's sensor readings."""

    def query_readings(
        self,
        task_id: str,
        start: datetime,
        end: datetime,
        location_ids: Sequence[str] = (),
    ) -> list[Reading]:
        """Readings with start <= timestamp <= end; no location filter when empty."""
        ...


@runtime_checkable
class Repository(Protocol):
    async def init(self) -> None:
        ...

    async def insert_readings(self, task_id: str, readings: Iterable[Reading]) -> int:
        ...

    async def load_task(self, task_id: str) -> list[Reading]:
        ...

    async def device_ids(self, task_id: str) -> list[str]:
        ...

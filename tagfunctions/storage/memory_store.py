from __future__ import annotations
import logging
from bisect import bisect_left, bisect_right
from datetime import datetime
from threading import Lock
from typing import Iterable, Sequence

from ..domain.models import Reading

logger = logging.getLogger(__name__)


def _ts(r: Reading) -> datetime:
    return r.timestamp


class MemoryReadingStore:
    """In-memory task snapshots, queried synchronously by the evaluator.

    Snapshots are replaced wholesale, never edited in place, so concurrent
    evaluations only ever see a complete task.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._tasks: dict[str, tuple[Reading, ...]] = {}

    def load_task(self, task_id: str, readings: Iterable[Reading]) -> int:
        ordered = tuple(sorted(readings, key=_ts))
        with self._lock:
            self._tasks[task_id] = ordered
        logger.info("Loaded %d readings for task %s", len(ordered), task_id)
        return len(ordered)

    def query_readings(
        self,
        task_id: str,
        start: datetime,
        end: datetime,
        location_ids: Sequence[str] = (),
    ) -> list[Reading]:
        with self._lock:
            rows = self._tasks.get(task_id)
        if rows is None:
            logger.warning("Task %s has no readings loaded", task_id)
            return []

        lo = bisect_left(rows, start, key=_ts)
        hi = bisect_right(rows, end, key=_ts)
        wanted = set(location_ids)
        return [r for r in rows[lo:hi] if not wanted or r.device_id in wanted]

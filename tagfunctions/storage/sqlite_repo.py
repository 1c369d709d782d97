from __future__ import annotations
import math
import aiosqlite
from datetime import datetime
from typing import Iterable, List
from ..domain.models import Reading


def _real(value) -> float:
    return math.nan if value is None else float(value)


class SQLiteRepository:
    def __init__(self, path: str) -> None:
        self._path = path

    async def init(self) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS readings (
                    task_id TEXT NOT NULL,
                    device_id TEXT NOT NULL,
                    ts_local TEXT NOT NULL,
                    temperature REAL,
                    humidity REAL
                )
                """
            )
            await db.execute("CREATE INDEX IF NOT EXISTS idx_readings_task_ts ON readings(task_id, ts_local)")
            await db.execute("CREATE INDEX IF NOT EXISTS idx_readings_task_dev ON readings(task_id, device_id)")
            await db.commit()

    async def insert_readings(self, task_id: str, readings: Iterable[Reading]) -> int:
        rows = [
            (
                task_id,
                r.device_id,
                r.timestamp.isoformat(timespec="microseconds"),
                None if math.isnan(r.temperature) else r.temperature,
                None if math.isnan(r.humidity) else r.humidity,
            )
            for r in readings
        ]
        async with aiosqlite.connect(self._path) as db:
            await db.executemany(
                "INSERT INTO readings(task_id,device_id,ts_local,temperature,humidity) VALUES (?,?,?,?,?)",
                rows,
            )
            await db.commit()
        return len(rows)

    async def load_task(self, task_id: str) -> List[Reading]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                """
                SELECT device_id,ts_local,temperature,humidity
                FROM readings
                WHERE task_id = ?
                ORDER BY ts_local ASC
                """,
                (task_id,),
            )
            rows = await cur.fetchall()
        return [
            Reading(
                device_id=dev,
                timestamp=datetime.fromisoformat(ts),
                temperature=_real(temp),
                humidity=_real(hum),
            )
            for dev, ts, temp, hum in rows
        ]

    async def device_ids(self, task_id: str) -> List[str]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                """
                SELECT device_id, MIN(ts_local) AS first_seen
                FROM readings
                WHERE task_id = ?
                GROUP BY device_id
                ORDER BY first_seen ASC
                """,
                (task_id,),
            )
            rows = await cur.fetchall()
        return [dev for dev, _ in rows]

"""
Command-line entry point.

Usage:
    tagfn functions
    tagfn import-readings --task T1 --file readings.json
    tagfn evaluate --roster tags.json --tag <id> --task T1 [--write]
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import math
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from .core.config import settings
from .core.log import configure_logging
from .domain.evaluator import Evaluator
from .domain.models import Reading
from .domain.normalize import parse_date_value, parse_number
from .domain.registry import KIND_SPECS
from .domain.tags import Tag
from .services.runner import TagFunctionRunner
from .storage.memory_store import MemoryReadingStore
from .storage.sqlite_repo import SQLiteRepository

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR_RESULT = 1
EXIT_USAGE = 2

_roster_adapter = TypeAdapter(list[Tag])


class UsageError(Exception):
    pass


def load_roster(path: Path) -> list[Tag]:
    try:
        return _roster_adapter.validate_json(path.read_bytes())
    except OSError as e:
        raise UsageError(f"Cannot read roster {path}: {e}") from e
    except ValidationError as e:
        raise UsageError(f"Invalid roster {path}: {e.error_count()} error(s)\n{e}") from e


def save_roster(path: Path, tags: Sequence[Tag]) -> None:
    path.write_text(
        json.dumps([t.dump() for t in tags], ensure_ascii=False, indent=2), encoding="utf-8"
    )


def reading_from_row(row: dict[str, Any]) -> Reading:
    """One exported data row; accepts camelCase or snake_case keys."""
    device_id = row.get("deviceId", row.get("device_id"))
    ts, _ = parse_date_value(row.get("timestamp"))
    if not device_id or ts is None:
        raise UsageError(f"Reading row needs deviceId and timestamp: {row}")

    def number(key: str) -> float:
        value = parse_number(row.get(key))
        return math.nan if value is None else value

    return Reading(
        device_id=str(device_id),
        timestamp=ts,
        temperature=number("temperature"),
        humidity=number("humidity"),
    )


async def _import_readings(db_path: str, task_id: str, rows: list[dict[str, Any]]) -> int:
    repo = SQLiteRepository(db_path)
    await repo.init()
    count = await repo.insert_readings(task_id, [reading_from_row(r) for r in rows])
    logger.info("Task %s devices: %s", task_id, ", ".join(await repo.device_ids(task_id)))
    return count


async def _load_store(db_path: str, task_id: str) -> MemoryReadingStore:
    repo = SQLiteRepository(db_path)
    await repo.init()
    store = MemoryReadingStore()
    store.load_task(task_id, await repo.load_task(task_id))
    return store


def cmd_functions(args: argparse.Namespace) -> int:
    for spec in KIND_SPECS.values():
        print(f"{spec.kind.value:<28} {spec.family.value:<11} {spec.output.value:<9} {spec.label}")
    return EXIT_OK


def cmd_import(args: argparse.Namespace) -> int:
    path = Path(args.file)
    try:
        rows = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise UsageError(f"Cannot read readings {path}: {e}") from e
    if not isinstance(rows, list):
        raise UsageError(f"{path} must hold a JSON list of readings")

    count = asyncio.run(_import_readings(args.db, args.task, rows))
    logger.info("Imported %d readings into task %s (%s)", count, args.task, args.db)
    print(count)
    return EXIT_OK


def cmd_evaluate(args: argparse.Namespace) -> int:
    roster_path = Path(args.roster)
    tags = load_roster(roster_path)
    tag = next((t for t in tags if t.id == args.tag), None)
    if tag is None:
        raise UsageError(f"Tag {args.tag} not found in {roster_path}")
    if tag.function_config is None:
        raise UsageError(f"Tag {args.tag} has no functionConfig")

    store = asyncio.run(_load_store(args.db, args.task))
    runner = TagFunctionRunner(tag, tags, args.task, Evaluator(store))
    runner.execute()

    result = runner.state.last_result
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    if args.write:
        save_roster(roster_path, tags)
        logger.info("Roster written back to %s", roster_path)
    return EXIT_OK if result.ok else EXIT_ERROR_RESULT


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    p = argparse.ArgumentParser(prog="tagfn", description="Cold-chain report tag function engine")
    sub = p.add_subparsers(dest="command", required=True)

    fn = sub.add_parser("functions", parents=[common], help="List every function kind")
    fn.set_defaults(handler=cmd_functions)

    imp = sub.add_parser("import-readings", parents=[common], help="Load a JSON list of readings into SQLite")
    imp.add_argument("--task", required=True, help="Task id the readings belong to")
    imp.add_argument("--file", required=True, help="JSON list of {deviceId, timestamp, temperature, humidity}")
    imp.add_argument("--db", default=settings.sqlite_path, help=f"SQLite path (default: {settings.sqlite_path})")
    imp.set_defaults(handler=cmd_import)

    ev = sub.add_parser("evaluate", parents=[common], help="Run a tag's configured function")
    ev.add_argument("--roster", required=True, help="JSON list of report tags")
    ev.add_argument("--tag", required=True, help="Id of the tag to evaluate")
    ev.add_argument("--task", required=True, help="Task whose readings are used")
    ev.add_argument("--db", default=settings.sqlite_path, help=f"SQLite path (default: {settings.sqlite_path})")
    ev.add_argument("--write", action="store_true", help="Save the updated roster back")
    ev.set_defaults(handler=cmd_evaluate)
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None)
    logger.info("%s: %s", settings.app_name, args.command)
    try:
        return args.handler(args)
    except UsageError as e:
        logger.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations
import logging
import math
from datetime import datetime
from typing import Iterable, Mapping, Optional

from ..core.timeutil import display
from .formatter import query_info
from .interfaces import ReadingStore
from .models import ErrorKind, FunctionError, Reading, ResolvedWindow
from .normalize import distinct_locations, parse_tag_date
from .registry import WindowCall
from .tags import Tag

logger = logging.getLogger(__name__)

NO_MATCHED_READINGS = "时间范围内没有匹配的布点数据"
NO_VALID_TEMPERATURE = "没有有效的温度数据"


def resolve_locations(tag_ids: Iterable[str], tags: Mapping[str, Tag]) -> list[str]:
    locations = distinct_locations(tag_ids, tags)
    if not locations:
        raise FunctionError(ErrorKind.MISSING_INPUT, "请选择至少一个布点标签，且标签值不能为空")
    return locations


def resolve_interval(
    start_tag_id: Optional[str], end_tag_id: Optional[str], tags: Mapping[str, Tag]
) -> tuple[datetime, datetime]:
    start_tag = tags.get(start_tag_id) if start_tag_id else None
    end_tag = tags.get(end_tag_id) if end_tag_id else None
    if start_tag is None or end_tag is None:
        raise FunctionError(ErrorKind.TAG_NOT_FOUND, "开始或结束时间标签不存在")

    start, start_date_only = parse_tag_date(start_tag)
    end, end_date_only = parse_tag_date(end_tag)
    if start is None or end is None:
        raise FunctionError(ErrorKind.INVALID_INTERVAL, "开始或结束时间无效")

    # Date-only endpoints cover the whole local day
    if start_date_only:
        start = start.replace(hour=0, minute=0, second=0, microsecond=0)
    if end_date_only:
        end = end.replace(hour=23, minute=59, second=59, microsecond=999000)

    if start > end:
        raise FunctionError(
            ErrorKind.INVALID_INTERVAL,
            "开始时间不能晚于结束时间",
            f"{display(start)} ~ {display(end)}",
        )
    return start, end


def resolve_window(
    store: ReadingStore, task_id: str, call: WindowCall, tags: Mapping[str, Tag]
) -> ResolvedWindow:
    locations = resolve_locations(call.location_tag_ids, tags)
    start, end = resolve_interval(call.start_tag_id, call.end_tag_id, tags)

    readings = store.query_readings(task_id, start, end, locations)
    info = query_info(locations, start, end, len(readings))
    logger.debug(
        "Window %s ~ %s locations=%s hits=%d", start.isoformat(), end.isoformat(), locations, len(readings)
    )
    if not readings:
        raise FunctionError(ErrorKind.NO_DATA, "时间范围内没有匹配数据", info)

    return ResolvedWindow(
        start=start,
        end=end,
        locations=tuple(locations),
        readings=tuple(readings),
        query_info=info,
    )


def matched_readings(window: ResolvedWindow) -> list[Reading]:
    matched = window.matched()
    if not matched:
        raise FunctionError(ErrorKind.NO_DATA, NO_MATCHED_READINGS, window.query_info)
    return matched


def finite_temperatures(readings: Iterable[Reading]) -> list[Reading]:
    """Readings with a finite temperature; NoData when none remain."""
    out = [r for r in readings if math.isfinite(r.temperature)]
    if not out:
        raise FunctionError(ErrorKind.NO_DATA, NO_VALID_TEMPERATURE)
    return out

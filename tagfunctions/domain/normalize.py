from __future__ import annotations
import logging
import math
import re
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from ..core.timeutil import to_local_naive
from .tags import Tag, TagType

logger = logging.getLogger(__name__)

# `|`, ASCII comma, full-width comma
LOCATION_SEPARATORS = re.compile(r"[|,，]")
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_FALLBACK_FORMATS = ("%Y/%m/%d %H:%M:%S", "%Y/%m/%d %H:%M", "%Y/%m/%d")


def index_tags(tags: Iterable[Tag]) -> dict[str, Tag]:
    """Id -> tag; the first tag wins when ids repeat."""
    out: dict[str, Tag] = {}
    for t in tags:
        if t.id is not None:
            out.setdefault(t.id, t)
    return out


def split_tokens(raw: Any) -> list[str]:
    if raw is None:
        return []
    return [s.strip() for s in LOCATION_SEPARATORS.split(str(raw)) if s.strip()]


def to_location_set(raw: Any) -> list[str]:
    """De-duplicated location ids in first-seen order."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set, frozenset)):
        parts = [str(v).strip() for v in raw if v]
    else:
        parts = split_tokens(raw)
    return list(dict.fromkeys(p for p in parts if p))


def distinct_locations(tag_ids: Iterable[str], tags: Mapping[str, Tag]) -> list[str]:
    found: list[str] = []
    for tag_id in tag_ids or ():
        tag = tags.get(tag_id)
        if tag is None or tag.type is not TagType.LOCATION:
            logger.debug("Skipping location tag %s (missing or not a location tag)", tag_id)
            continue
        found.extend(to_location_set(tag.value))
    return list(dict.fromkeys(found))


def parse_date_value(raw: Any) -> tuple[Optional[datetime], bool]:
    """Returns (local datetime or None, is_date_only). Never raises."""
    if raw is None or isinstance(raw, bool):
        return None, False

    if isinstance(raw, datetime):
        return to_local_naive(raw), False

    # Epoch milliseconds
    if isinstance(raw, (int, float)):
        try:
            return datetime.fromtimestamp(raw / 1000), False
        except (OverflowError, OSError, ValueError):
            return None, False

    s = str(raw).strip()
    if not s:
        return None, False

    # Date only: local midnight
    if _DATE_ONLY.match(s):
        try:
            return datetime.strptime(s, "%Y-%m-%d"), True
        except ValueError:
            return None, False

    normalized = s if "T" in s else s.replace(" ", "T", 1)
    try:
        return to_local_naive(datetime.fromisoformat(normalized)), False
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(s, fmt), False
        except ValueError:
            continue
    return None, False


def parse_tag_date(tag: Optional[Tag]) -> tuple[Optional[datetime], bool]:
    if tag is None:
        return None, False
    return parse_date_value(tag.value)


def is_blank(raw: Any) -> bool:
    return raw is None or raw == ""


def parse_number(raw: Any) -> Optional[float]:
    """Leading-number parse: "12.5℃" -> 12.5, "abc" -> None."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return None if math.isnan(raw) else float(raw)
    m = _LEADING_NUMBER.match(str(raw))
    if not m:
        return None
    return float(m.group(0))

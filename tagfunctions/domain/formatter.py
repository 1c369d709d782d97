from __future__ import annotations
import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Optional, Sequence

from ..core.timeutil import display
from .models import Computation, FunctionError, FunctionResult, ResultValue, RunStatus
from .registry import KindSpec

VALUE = "{value}"
SUCCESS_MESSAGE = "计算完成：{}"


def fixed(value: float, places: int) -> str:
    """Half-up on the exact binary value, like the editor's toFixed."""
    if not math.isfinite(value):
        return render(value)
    exact = Decimal(value)
    with localcontext() as ctx:
        # Room for every integer digit of a double plus the requested places
        ctx.prec = max(exact.adjusted(), 0) + places + 2
        return str(exact.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def round_value(value: float, places: int) -> float:
    # Non-finite results pass through unrounded
    if not math.isfinite(value):
        return value
    return float(fixed(value, places))


def render(value: Optional[ResultValue]) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    return repr(float(value))


def query_info(locations: Sequence[str], start: datetime, end: datetime, hits: int) -> str:
    return "\n".join(
        [
            f"查询设备: {' | '.join(locations) or '无'}",
            f"本地时间: {display(start)} ~ {display(end)}",
            f"命中: {hits} 条",
        ]
    )


def preview(lines: Sequence[str], limit: int) -> list[str]:
    if len(lines) <= limit:
        return list(lines)
    return list(lines[:limit]) + [f"... 共 {len(lines)} 条"]


def success(spec: KindSpec, comp: Computation, info: Optional[str] = None) -> FunctionResult:
    places = comp.places if comp.places is not None else spec.precision
    value = comp.value
    if not isinstance(value, str):
        value = float(value)
        if places is not None:
            value = round_value(value, places)

    shown = render(value)
    lines = [info] if info else []
    lines.extend(line.replace(VALUE, shown) for line in comp.lines)
    return FunctionResult(
        status=RunStatus.SUCCESS,
        message=SUCCESS_MESSAGE.format(comp.prefix + shown),
        value=value,
        detail="\n".join(lines) or None,
    )


def failure(err: FunctionError) -> FunctionResult:
    return FunctionResult(
        status=RunStatus.ERROR,
        message=err.message,
        detail=err.detail,
        error=err.kind,
    )

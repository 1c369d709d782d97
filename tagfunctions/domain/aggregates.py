"""Scalar aggregates and extremum location/time over a resolved window."""
from __future__ import annotations
import math
from typing import Sequence

from ..core.timeutil import minute_key
from .formatter import fixed, render
from .models import Computation, ErrorKind, FunctionError, Reading, ResolvedWindow
from .registry import FunctionKind, WindowCall
from .window import finite_temperatures, matched_readings

K = FunctionKind

_MAX_KINDS = {K.MAX_TEMP, K.MAX_HUMIDITY, K.MAX_TEMP_LOCATION, K.TEMP_MAX_TIME}
_MIN_KINDS = {K.MIN_TEMP, K.MIN_HUMIDITY, K.MIN_TEMP_LOCATION, K.TEMP_MIN_TIME}


def nan_max(values: Sequence[float]) -> float:
    # NaN poisons the result instead of depending on its position
    return math.nan if any(math.isnan(v) for v in values) else max(values)


def nan_min(values: Sequence[float]) -> float:
    return math.nan if any(math.isnan(v) for v in values) else min(values)


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def metric_values(readings: Sequence[Reading], metric: str) -> list[float]:
    return [r.temperature if metric == "temperature" else r.humidity for r in readings]


def _extremum(kind: FunctionKind, values: Sequence[float]) -> float:
    return nan_max(values) if kind in _MAX_KINDS else nan_min(values)


def _label(kind: FunctionKind) -> str:
    return "最高温度" if kind in _MAX_KINDS else "最低温度"


def scalar(call: WindowCall, window: ResolvedWindow) -> Computation:
    values = metric_values(window.matched(), call.spec.metric)
    if not values:
        raise FunctionError(ErrorKind.NO_DATA, "没有可计算的数据", window.query_info)

    if call.spec.kind in (K.AVG_TEMP, K.AVG_HUMIDITY):
        result = mean(values)
    else:
        result = _extremum(call.spec.kind, values)
    return Computation(value=result, lines=["结果: {value}"])


def extremum_location(call: WindowCall, window: ResolvedWindow) -> Computation:
    readings = finite_temperatures(matched_readings(window))
    target = _extremum(call.spec.kind, [r.temperature for r in readings])

    # Exact float equality, no tolerance
    devices = list(dict.fromkeys(r.device_id for r in readings if r.temperature == target))
    if not devices:
        raise FunctionError(
            ErrorKind.NO_MATCH,
            "未找到对应温度的测点",
            f"{window.query_info}\n目标温度: {render(target)}\n未找到测点",
        )
    return Computation(
        value=" | ".join(devices),
        lines=[f"{_label(call.spec.kind)}: {render(target)}", "测点: {value}"],
    )


def extremum_time(call: WindowCall, window: ResolvedWindow) -> Computation:
    readings = finite_temperatures(matched_readings(window))
    target = _extremum(call.spec.kind, [r.temperature for r in readings])

    tied = sorted((r for r in readings if r.temperature == target), key=lambda r: r.timestamp)
    if not tied:
        raise FunctionError(
            ErrorKind.NO_MATCH,
            "未找到对应温度的数据点",
            f"{window.query_info}\n目标温度: {render(target)}\n未找到数据点",
        )
    return Computation(
        value=minute_key(tied[0].timestamp),
        lines=[
            f"{_label(call.spec.kind)}: {fixed(target, 1)}",
            "对应时间: {value}",
            f"匹配数据点数量: {len(tied)}",
        ],
    )


HANDLERS = {
    K.MAX_TEMP: scalar,
    K.MIN_TEMP: scalar,
    K.AVG_TEMP: scalar,
    K.MAX_HUMIDITY: scalar,
    K.MIN_HUMIDITY: scalar,
    K.AVG_HUMIDITY: scalar,
    K.MAX_TEMP_LOCATION: extremum_location,
    K.MIN_TEMP_LOCATION: extremum_location,
    K.TEMP_MAX_TIME: extremum_time,
    K.TEMP_MIN_TIME: extremum_time,
}


def run(call: WindowCall, window: ResolvedWindow) -> Computation:
    return HANDLERS[call.spec.kind](call, window)

"""Threshold arrival, exceed and first-reach-time detection."""
from __future__ import annotations
from datetime import datetime

from ..core.timeutil import minute_key
from .formatter import render
from .models import Computation, ErrorKind, FunctionError, Reading, ResolvedWindow
from .registry import FunctionKind, Output, WindowCall

K = FunctionKind

_ARRIVAL = {K.TEMP_REACH_UPPER, K.TEMP_REACH_LOWER, K.HUMIDITY_REACH_UPPER, K.HUMIDITY_REACH_LOWER}


def _reached(call: WindowCall, reading: Reading) -> bool:
    value = reading.temperature if call.spec.metric == "temperature" else reading.humidity
    if call.spec.upper:
        return value >= call.threshold
    return value <= call.threshold


def _no_match(call: WindowCall, window: ResolvedWindow) -> FunctionError:
    return FunctionError(
        ErrorKind.NO_MATCH,
        "未找到满足条件的测点",
        f"{window.query_info}\n阈值: {render(call.threshold)}\n未满足条件",
    )


def _chronological(window: ResolvedWindow) -> list[Reading]:
    wanted = set(window.locations)
    return sorted((r for r in window.readings if r.device_id in wanted), key=lambda r: r.timestamp)


def arrival(call: WindowCall, window: ResolvedWindow) -> Computation:
    """Locations whose first qualifying reading is the earliest of all."""
    first_reach: dict[str, datetime] = {}
    for r in _chronological(window):
        if r.device_id not in first_reach and _reached(call, r):
            first_reach[r.device_id] = r.timestamp

    if not first_reach:
        raise _no_match(call, window)

    earliest = min(first_reach.values())
    fastest = [dev for dev, ts in first_reach.items() if ts == earliest]
    return Computation(
        value=" | ".join(fastest),
        lines=[f"阈值: {render(call.threshold)}", "最快: {value}"],
    )


def exceed(call: WindowCall, window: ResolvedWindow) -> Computation:
    """Every location that satisfies the threshold anywhere in the window."""
    matched = dict.fromkeys(r.device_id for r in window.matched() if _reached(call, r))
    if not matched:
        raise _no_match(call, window)
    return Computation(
        value=" | ".join(matched),
        lines=[f"阈值: {render(call.threshold)}", "测点: {value}"],
    )


def first_reach_time(call: WindowCall, window: ResolvedWindow) -> Computation:
    first = next((r for r in _chronological(window) if _reached(call, r)), None)
    if first is None:
        raise _no_match(call, window)
    return Computation(
        value=minute_key(first.timestamp),
        lines=[f"阈值: {render(call.threshold)}", "第一次到达时间: {value}"],
    )


def run(call: WindowCall, window: ResolvedWindow) -> Computation:
    if call.spec.output is Output.TIME:
        return first_reach_time(call, window)
    if call.spec.kind in _ARRIVAL:
        return arrival(call, window)
    return exceed(call, window)

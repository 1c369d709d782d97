"""Minute-bucketed uniformity, variation and same-time difference metrics.

A bucket is every finite temperature whose timestamp truncates to the same
local minute (key ``YYYY-MM-DD HH:mm``). Buckets are always walked in key
order, so results do not depend on the order readings arrive in.
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Iterable

from ..core.timeutil import minute_key, whole_minutes
from .formatter import fixed, preview
from .models import Computation, ErrorKind, FunctionError, Reading, ResolvedWindow
from .registry import FunctionKind, WindowCall
from .window import NO_VALID_TEMPERATURE, finite_temperatures, matched_readings

K = FunctionKind


@dataclass(frozen=True)
class BucketStats:
    key: str
    max: float
    min: float
    avg: float

    @property
    def diff(self) -> float:
        return self.max - self.min


@dataclass(frozen=True)
class DeviceRange:
    device_id: str
    max: float
    min: float

    @property
    def span(self) -> float:
        return self.max - self.min


def minute_buckets(readings: Iterable[Reading]) -> list[BucketStats]:
    grouped: dict[str, list[float]] = {}
    for r in readings:
        if not math.isfinite(r.temperature):
            continue
        grouped.setdefault(minute_key(r.timestamp), []).append(r.temperature)
    if not grouped:
        raise FunctionError(ErrorKind.NO_DATA, NO_VALID_TEMPERATURE)
    return [
        BucketStats(key=key, max=max(temps), min=min(temps), avg=sum(temps) / len(temps))
        for key, temps in sorted(grouped.items())
    ]


def device_ranges(readings: Iterable[Reading]) -> list[DeviceRange]:
    spans: dict[str, tuple[float, float]] = {}
    for r in readings:
        if not math.isfinite(r.temperature):
            continue
        hi, lo = spans.get(r.device_id, (r.temperature, r.temperature))
        spans[r.device_id] = (max(hi, r.temperature), min(lo, r.temperature))
    if not spans:
        raise FunctionError(ErrorKind.NO_DATA, NO_VALID_TEMPERATURE)
    return [DeviceRange(device_id=d, max=hi, min=lo) for d, (hi, lo) in spans.items()]


def _device_lines(ranges: list[DeviceRange]) -> list[str]:
    return [
        f"{d.device_id}: {fixed(d.min, 1)}~{fixed(d.max, 1)} (范围: {fixed(d.span, 1)})"
        for d in ranges
    ]


def _bucket_lines(points: list[BucketStats], limit: int) -> list[str]:
    lines = [
        f"{i}: {p.key} - 最大:{fixed(p.max, 1)}, 最小:{fixed(p.min, 1)}, 平均:{fixed(p.avg, 1)}"
        for i, p in enumerate(points)
    ]
    return preview(lines, limit)


def paired_sums(points: list[BucketStats]) -> tuple[float, float]:
    """Pair bucket y with bucket n//2 + y + n%2, summing max and min of both.

    Walks the first ceil(n/2) buckets; for odd n the middle bucket is
    counted once, unpaired.
    """
    n = len(points)
    max_num = 0.0
    min_num = 0.0
    for y in range(math.ceil(n / 2)):
        max_num += points[y].max
        min_num += points[y].min
        y2 = n // 2 + y + n % 2
        if y2 < n:
            max_num += points[y2].max
            min_num += points[y2].min
    return max_num, min_num


def max_diff_at_same_time(call: WindowCall, window: ResolvedWindow) -> Computation:
    points = minute_buckets(matched_readings(window))

    best = points[0]
    for p in points:
        # strict: the earliest bucket keeps a tie
        if p.diff > best.diff:
            best = p

    if call.spec.kind is K.MAX_TEMP_DIFF_AT_SAME_TIME:
        value, diff_line = best.diff, "最大温度差值: {value}"
    else:
        value, diff_line = best.key, f"最大温度差值: {fixed(best.diff, 1)}"
    return Computation(
        value=value,
        lines=[
            diff_line,
            f"对应时间点: {best.key}",
            f"该时间点最高温度: {fixed(best.max, 1)}",
            f"该时间点最低温度: {fixed(best.min, 1)}",
            f"时间点总数: {len(points)}",
        ],
    )


def uniformity(call: WindowCall, window: ResolvedWindow) -> Computation:
    readings = matched_readings(window)
    minutes = whole_minutes(window.start, window.end)
    if minutes <= 0:
        raise FunctionError(ErrorKind.INVALID_INTERVAL, "时间范围无效，结束时间必须晚于开始时间")

    ranges = device_ranges(readings)
    total = sum(d.span for d in ranges)
    return Computation(
        value=abs(total / minutes),
        lines=[
            f"时间范围: {minutes} 分钟",
            f"设备数量: {len(ranges)}",
            f"温度变化范围总和: {fixed(total, 2)}",
            "均匀度值: {value}",
            "",
            "设备详情:",
            *_device_lines(ranges),
        ],
    )


def variation_range_sum(call: WindowCall, window: ResolvedWindow) -> Computation:
    ranges = device_ranges(matched_readings(window))
    total = sum(d.span for d in ranges)
    return Computation(
        value=abs(total),
        lines=[
            f"设备数量: {len(ranges)}",
            "温度变化范围总和: {value}",
            "",
            "设备详情:",
            *_device_lines(ranges),
        ],
    )


def center_point_fluctuation(call: WindowCall, window: ResolvedWindow) -> Computation:
    temps = [r.temperature for r in finite_temperatures(matched_readings(window))]
    hi, lo = max(temps), min(temps)
    return Computation(
        value=abs((hi - lo) / 2),
        lines=[
            f"最高温度: {fixed(hi, 2)}",
            f"最低温度: {fixed(lo, 2)}",
            f"温度差: {fixed(hi - lo, 2)}",
            "波动度: {value}",
        ],
    )


def fluctuation(call: WindowCall, window: ResolvedWindow) -> Computation:
    temps = [r.temperature for r in finite_temperatures(matched_readings(window))]
    hi, lo = max(temps), min(temps)
    dp = call.decimal_places
    return Computation(
        value=(hi - lo) / 2,
        places=dp,
        prefix="±",
        lines=[
            f"小数位数: {dp}",
            f"最高温度: {fixed(hi, dp)}",
            f"最低温度: {fixed(lo, dp)}",
            f"温度差: {fixed(hi - lo, dp)}",
            "温度波动度(±(max-min)/2): ±{value}",
        ],
    )


def uniformity_average(call: WindowCall, window: ResolvedWindow, preview_lines: int) -> Computation:
    points = minute_buckets(matched_readings(window))
    dp = call.decimal_places
    avg_diff = sum(p.diff for p in points) / len(points)
    shown = [f"{i + 1}. {p.key} 差值:{fixed(p.diff, dp)}" for i, p in enumerate(points[:preview_lines])]
    return Computation(
        value=avg_diff,
        places=dp,
        lines=[
            f"小数位数: {dp}",
            f"时间点数量: {len(points)}",
            "温度均匀度(差值算术平均): {value}",
            "",
            f"每次测量差值(前{preview_lines}条):",
            *(shown or ["无"]),
        ],
    )


def uniformity_pairing(call: WindowCall, window: ResolvedWindow, preview_lines: int) -> Computation:
    points = minute_buckets(matched_readings(window))
    n = len(points)
    max_num, min_num = paired_sums(points)
    details = ["", "时间点详情:", *_bucket_lines(points, preview_lines)]

    if call.spec.kind is K.TEMP_UNIFORMITY_VALUE:
        return Computation(
            value=abs((max_num - min_num) / n),
            lines=[
                f"时间点数量: {n}",
                f"最大温度总和: {fixed(max_num, 1)}",
                f"最小温度总和: {fixed(min_num, 1)}",
                "均匀度值: {value}",
                *details,
            ],
        )

    is_max = call.spec.kind is K.TEMP_UNIFORMITY_MAX
    label = "最高温度总和" if is_max else "最低温度总和"
    return Computation(
        value=max_num if is_max else min_num,
        lines=[f"时间点数量: {n}", f"{label}: {{value}}", *details],
    )


def run(call: WindowCall, window: ResolvedWindow, preview_lines: int = 10) -> Computation:
    kind = call.spec.kind
    if kind in (K.MAX_TEMP_DIFF_AT_SAME_TIME, K.MAX_TEMP_DIFF_TIME_POINT):
        return max_diff_at_same_time(call, window)
    if kind is K.TEMP_UNIFORMITY:
        return uniformity(call, window)
    if kind is K.TEMP_VARIATION_RANGE_SUM:
        return variation_range_sum(call, window)
    if kind is K.CENTER_POINT_TEMP_FLUCTUATION:
        return center_point_fluctuation(call, window)
    if kind is K.TEMP_FLUCTUATION:
        return fluctuation(call, window)
    if kind is K.TEMP_UNIFORMITY_AVERAGE:
        return uniformity_average(call, window, preview_lines)
    return uniformity_pairing(call, window, preview_lines)

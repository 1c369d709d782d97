"""Metrics that combine readings with values held on other tags, or skip
the shared window query entirely (power, single device time point)."""
from __future__ import annotations
import logging
import math
from typing import Any, Iterable, Mapping

from ..core.timeutil import MINUTE, display, truncate_to_minute, whole_minutes
from .aggregates import mean
from .formatter import fixed, render, round_value
from .interfaces import ReadingStore
from .models import Computation, ErrorKind, FunctionError, Reading, ResolvedWindow
from .normalize import distinct_locations, is_blank, parse_number, parse_tag_date, split_tokens
from .registry import AvgDeviationCall, CenterPointCall, FunctionKind, PowerCall, TimePointCall, WindowCall
from .tags import Tag
from .window import NO_VALID_TEMPERATURE, finite_temperatures, matched_readings, resolve_interval

logger = logging.getLogger(__name__)

INVALID_DURATION = "时间范围无效，结束时间必须晚于开始时间"


def device_means(readings: Iterable[Reading]) -> dict[str, float]:
    sums: dict[str, list[float]] = {}
    for r in readings:
        if math.isfinite(r.temperature):
            sums.setdefault(r.device_id, []).append(r.temperature)
    return {dev: sum(temps) / len(temps) for dev, temps in sums.items()}


def _tag_number(tags: Mapping[str, Tag], tag_id: str, label: str) -> float:
    tag = tags.get(tag_id)
    if tag is None:
        raise FunctionError(ErrorKind.TAG_NOT_FOUND, f"{label}标签不存在")
    if is_blank(tag.value):
        raise FunctionError(ErrorKind.INVALID_VALUE, f"{label}标签值不能为空")
    value = parse_number(tag.value)
    if value is None:
        raise FunctionError(ErrorKind.INVALID_VALUE, f"{label}标签值不是有效的数字: {tag.value}")
    return value


def _single_value(raw: Any) -> Any:
    if isinstance(raw, (list, tuple)):
        if not raw:
            raise FunctionError(ErrorKind.INVALID_VALUE, "中心点布点标签值不能为空")
        if len(raw) > 1:
            raise FunctionError(ErrorKind.MULTIPLE_VALUES, "中心点布点标签只能有一个值，当前有多个值")
        raw = raw[0]
    if is_blank(raw):
        raise FunctionError(ErrorKind.INVALID_VALUE, "中心点布点标签值不能为空")
    if isinstance(raw, str):
        parts = split_tokens(raw)
        if len(parts) > 1:
            raise FunctionError(
                ErrorKind.MULTIPLE_VALUES, "中心点布点标签只能有一个值，当前有多个值（用 | 或逗号分隔）"
            )
        raw = parts[0] if parts else raw
    return raw


def center_point_deviation(call: CenterPointCall, window: ResolvedWindow, tags: Mapping[str, Tag]) -> Computation:
    tag = tags.get(call.center_point_tag_id)
    if tag is None:
        raise FunctionError(ErrorKind.TAG_NOT_FOUND, "中心点布点标签不存在")
    raw = _single_value(tag.value)
    setpoint = parse_number(raw)
    if setpoint is None:
        raise FunctionError(ErrorKind.INVALID_VALUE, f"中心点布点标签值不是有效的数字: {raw}")

    avg = mean([r.temperature for r in finite_temperatures(matched_readings(window))])
    return Computation(
        value=abs(setpoint - avg),
        lines=[f"中心点温度设定值: {render(setpoint)}", f"平均温度: {fixed(avg, 1)}", "偏差值: {value}"],
    )


def avg_deviation(call: AvgDeviationCall, window: ResolvedWindow, tags: Mapping[str, Tag]) -> Computation:
    readings = matched_readings(window)
    max_temp = _tag_number(tags, call.max_temp_tag_id, "最高温度") if call.max_temp_tag_id else call.max_temp
    min_temp = _tag_number(tags, call.min_temp_tag_id, "最低温度") if call.min_temp_tag_id else call.min_temp

    means = device_means(readings)
    if not means:
        raise FunctionError(ErrorKind.NO_DATA, NO_VALID_TEMPERATURE)
    avg_of_avgs = mean(list(means.values()))
    return Computation(
        value=(max_temp - min_temp) - avg_of_avgs,
        lines=[
            f"最高温度: {render(max_temp)}",
            f"最低温度: {render(min_temp)}",
            f"设备数量: {len(means)}",
            f"平均温度的平均值: {fixed(avg_of_avgs, 1)}",
            "平均偏差值: {value}",
            "",
            "设备详情:",
            *(f"{dev}: 平均温度 {fixed(avg, 1)}" for dev, avg in means.items()),
        ],
    )


def power(call: PowerCall, tags: Mapping[str, Tag]) -> Computation:
    """Battery drain metrics; uses the start/end window but reads no sensor data."""
    start, end = resolve_interval(call.start_tag_id, call.end_tag_id, tags)
    range_detail = f"{display(start)} ~ {display(end)}"

    if call.start_power_tag_id not in tags or call.end_power_tag_id not in tags:
        raise FunctionError(ErrorKind.TAG_NOT_FOUND, "开始电量或结束电量标签不存在")
    start_charge = _tag_number(tags, call.start_power_tag_id, "开始电量")
    end_charge = _tag_number(tags, call.end_power_tag_id, "结束电量")

    hours = (end - start).total_seconds() / 3600
    minutes = whole_minutes(start, end)
    if hours <= 0:
        raise FunctionError(ErrorKind.INVALID_INTERVAL, INVALID_DURATION)

    head = [
        f"开始时间: {range_detail}",
        f"开始电量: {render(start_charge)}%",
        f"结束电量: {render(end_charge)}%",
    ]
    if call.spec.kind is FunctionKind.POWER_CONSUMPTION_RATE:
        return Computation(
            value=(start_charge - end_charge) / hours,
            lines=[*head, f"时间差: {fixed(hours, 2)} 小时", "耗电率: {value} %/小时"],
        )

    draw = (start_charge - end_charge) / (minutes / 60) if minutes else math.inf
    if draw == 0 or not math.isfinite(draw):
        raise FunctionError(ErrorKind.INVALID_COMPUTATION, "功率计算无效，开始电量不能等于结束电量")
    return Computation(
        value=call.budget_percent / draw,
        lines=[
            *head,
            f"时间差: {minutes} 分钟",
            f"功率: {fixed(draw, 2)} %/小时",
            "最长使用时长: {value} 小时",
        ],
    )


def device_time_point(
    call: TimePointCall, store: ReadingStore, task_id: str, tags: Mapping[str, Tag]
) -> Computation:
    locations = distinct_locations(call.location_tag_ids, tags)
    if not locations:
        raise FunctionError(ErrorKind.MISSING_INPUT, "请选择一个布点标签，且标签值不能为空")
    if len(locations) > 1:
        raise FunctionError(ErrorKind.MULTIPLE_VALUES, "只能选择一个布点标签，当前有多个布点")
    device_id = locations[0]

    time_tag = tags.get(call.time_tag_id)
    if time_tag is None:
        raise FunctionError(ErrorKind.TAG_NOT_FOUND, "时间标签不存在")
    moment, _ = parse_tag_date(time_tag)
    if moment is None:
        raise FunctionError(ErrorKind.INVALID_VALUE, "时间标签值无效")

    point = truncate_to_minute(moment)
    window_end = point + MINUTE
    data = store.query_readings(task_id, point, window_end, [device_id])
    # The store bound is inclusive; the minute bucket is not
    in_minute = [r for r in data if r.device_id == device_id and point <= r.timestamp < window_end]
    logger.debug("Time point %s device=%s hits=%d", point.isoformat(), device_id, len(in_minute))

    if not in_minute:
        raise FunctionError(
            ErrorKind.NO_DATA,
            f"时间点 {display(point)} 没有设备 {device_id} 的数据",
            f"查询设备: {device_id}\n查询时间: {display(point)}\n"
            f"查询窗口: {display(point)} ~ {display(window_end)}\n命中: 0 条",
        )

    temps = [r.temperature for r in in_minute if math.isfinite(r.temperature)]
    if not temps:
        raise FunctionError(ErrorKind.NO_DATA, NO_VALID_TEMPERATURE)
    return Computation(
        value=mean(temps),
        lines=[
            f"设备: {device_id}",
            f"时间点: {display(point)}",
            f"数据条数: {len(temps)}",
            f"温度值: {', '.join(fixed(t, 2) for t in temps)}",
            "平均温度: {value}℃",
        ],
    )


def cooling_rate(call: WindowCall, window: ResolvedWindow) -> Computation:
    readings = matched_readings(window)

    def minute_of(moment) -> list[Reading]:
        lo = truncate_to_minute(moment)
        return [r for r in readings if lo <= r.timestamp < lo + MINUTE]

    start_data = minute_of(window.start)
    end_data = minute_of(window.end)
    if not start_data:
        raise FunctionError(ErrorKind.NO_DATA, "开始时间点没有数据")
    if not end_data:
        raise FunctionError(ErrorKind.NO_DATA, "结束时间点没有数据")

    means_a = device_means(start_data)
    means_b = device_means(end_data)
    if not means_a or not means_b:
        raise FunctionError(ErrorKind.NO_DATA, NO_VALID_TEMPERATURE)

    # Each side is rounded to 1 decimal before differencing
    mean_a = round_value(mean(list(means_a.values())), 1)
    mean_b = round_value(mean(list(means_b.values())), 1)
    diff = abs(mean_a - mean_b)

    minutes = whole_minutes(window.start, window.end)
    if minutes <= 0:
        raise FunctionError(ErrorKind.INVALID_INTERVAL, INVALID_DURATION)

    return Computation(
        value=diff / minutes,
        lines=[
            f"开始时间点平均温度: {render(mean_a)}℃",
            f"结束时间点平均温度: {render(mean_b)}℃",
            f"温度差: {fixed(diff, 1)}℃",
            f"时间差: {minutes} 分钟",
            "降温速率: {value} ℃/分钟",
        ],
    )

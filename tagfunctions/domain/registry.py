"""Closed table of function kinds and the inputs each one needs.

`Registry.bind` turns a flat editor `FunctionConfig` into one of the typed
call variants below, validating required inputs before any data is read.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from ..core.config import Settings, settings
from .models import ErrorKind, FunctionError
from .tags import FunctionConfig, TagType


class FunctionKind(str, Enum):
    TEMP_REACH_UPPER = "tempReachUpper"
    TEMP_REACH_LOWER = "tempReachLower"
    HUMIDITY_REACH_UPPER = "humidityReachUpper"
    HUMIDITY_REACH_LOWER = "humidityReachLower"
    TEMP_EXCEED_UPPER = "tempExceedUpper"
    TEMP_EXCEED_LOWER = "tempExceedLower"
    HUMIDITY_EXCEED_UPPER = "humidityExceedUpper"
    HUMIDITY_EXCEED_LOWER = "humidityExceedLower"
    MAX_TEMP = "maxTemp"
    MIN_TEMP = "minTemp"
    AVG_TEMP = "avgTemp"
    MAX_HUMIDITY = "maxHumidity"
    MIN_HUMIDITY = "minHumidity"
    AVG_HUMIDITY = "avgHumidity"
    MAX_TEMP_LOCATION = "maxTempLocation"
    MIN_TEMP_LOCATION = "minTempLocation"
    CENTER_POINT_TEMP_DEVIATION = "centerPointTempDeviation"
    TEMP_UNIFORMITY = "tempUniformity"
    CENTER_POINT_TEMP_FLUCTUATION = "centerPointTempFluctuation"
    TEMP_VARIATION_RANGE_SUM = "tempVariationRangeSum"
    TEMP_FIRST_REACH_UPPER_TIME = "tempFirstReachUpperTime"
    TEMP_FIRST_REACH_LOWER_TIME = "tempFirstReachLowerTime"
    TEMP_AVG_DEVIATION = "tempAvgDeviation"
    TEMP_UNIFORMITY_MAX = "tempUniformityMax"
    TEMP_UNIFORMITY_MIN = "tempUniformityMin"
    TEMP_UNIFORMITY_VALUE = "tempUniformityValue"
    TEMP_MAX_TIME = "tempMaxTime"
    TEMP_MIN_TIME = "tempMinTime"
    POWER_CONSUMPTION_RATE = "powerConsumptionRate"
    MAX_POWER_USAGE_DURATION = "maxPowerUsageDuration"
    AVG_COOLING_RATE = "avgCoolingRate"
    DEVICE_TIME_POINT_TEMP = "deviceTimePointTemp"
    MAX_TEMP_DIFF_AT_SAME_TIME = "maxTempDiffAtSameTime"
    MAX_TEMP_DIFF_TIME_POINT = "maxTempDiffTimePoint"
    TEMP_FLUCTUATION = "tempFluctuation"
    TEMP_UNIFORMITY_AVERAGE = "tempUniformityAverage"


class Family(str, Enum):
    SCALAR = "scalar"
    THRESHOLD = "threshold"
    UNIFORMITY = "uniformity"
    SAME_TIME = "same_time"
    EXTERNAL = "external"


class Output(str, Enum):
    LOCATION = "location"
    NUMBER = "number"
    TIME = "time"


class Role(str, Enum):
    TASK = "taskId"
    LOCATIONS = "locationTagIds"
    START = "startTagId"
    END = "endTagId"
    CENTER_POINT = "centerPointTagId"
    START_POWER = "startPowerTagId"
    END_POWER = "endPowerTagId"
    TIME = "timeTagId"


ROLE_MESSAGES: dict[Role, str] = {
    Role.TASK: "未关联任务，无法计算",
    Role.LOCATIONS: "请选择至少一个布点标签",
    Role.START: "请选择开始与结束时间标签",
    Role.END: "请选择开始与结束时间标签",
    Role.CENTER_POINT: "请选择中心点布点标签",
    Role.START_POWER: "请选择开始电量和结束电量标签",
    Role.END_POWER: "请选择开始电量和结束电量标签",
    Role.TIME: "请选择时间标签",
}

WINDOW_ROLES = (Role.TASK, Role.LOCATIONS, Role.START, Role.END)
POWER_ROLES = (Role.START, Role.END, Role.START_POWER, Role.END_POWER)
TIME_POINT_ROLES = (Role.TASK, Role.LOCATIONS, Role.TIME)


@dataclass(frozen=True)
class KindSpec:
    kind: FunctionKind
    family: Family
    output: Output
    label: str
    roles: tuple[Role, ...] = WINDOW_ROLES
    # Fixed rounding; None for string outputs or caller-chosen places
    precision: Optional[int] = None
    metric: str = "temperature"
    # True/False for threshold kinds (>= / <=), None otherwise
    upper: Optional[bool] = None
    uses_decimal_places: bool = False


@dataclass(frozen=True)
class MetricDefaults:
    temp_upper: float = 8.0
    temp_lower: float = 2.0
    humidity_upper: float = 80.0
    humidity_lower: float = 20.0
    avg_deviation_max_temp: float = 8.0
    avg_deviation_min_temp: float = 2.0
    decimal_places: int = 2
    power_budget_percent: float = 90.0
    preview_lines: int = 10

    @classmethod
    def from_settings(cls, s: Settings) -> MetricDefaults:
        return cls(
            temp_upper=s.temp_upper_threshold,
            temp_lower=s.temp_lower_threshold,
            humidity_upper=s.humidity_upper_threshold,
            humidity_lower=s.humidity_lower_threshold,
            avg_deviation_max_temp=s.avg_deviation_max_temp,
            avg_deviation_min_temp=s.avg_deviation_min_temp,
            decimal_places=s.default_decimal_places,
            power_budget_percent=s.power_budget_percent,
            preview_lines=s.detail_preview_lines,
        )

    def threshold_for(self, spec: KindSpec) -> Optional[float]:
        if spec.upper is None:
            return None
        if spec.metric == "humidity":
            return self.humidity_upper if spec.upper else self.humidity_lower
        return self.temp_upper if spec.upper else self.temp_lower


def _spec(kind, family, output, label, **kw) -> KindSpec:
    return KindSpec(kind=kind, family=family, output=output, label=label, **kw)


K, F, O = FunctionKind, Family, Output

KIND_SPECS: dict[FunctionKind, KindSpec] = {
    s.kind: s
    for s in (
        # threshold arrival / exceed / first-reach time
        _spec(K.TEMP_REACH_UPPER, F.THRESHOLD, O.LOCATION, "数据温度第一个到达上限测点", upper=True),
        _spec(K.TEMP_REACH_LOWER, F.THRESHOLD, O.LOCATION, "数据温度第一个到达下限测点", upper=False),
        _spec(K.HUMIDITY_REACH_UPPER, F.THRESHOLD, O.LOCATION, "数据湿度第一个到达上限测点", metric="humidity", upper=True),
        _spec(K.HUMIDITY_REACH_LOWER, F.THRESHOLD, O.LOCATION, "数据湿度第一个到达下限测点", metric="humidity", upper=False),
        _spec(K.TEMP_EXCEED_UPPER, F.THRESHOLD, O.LOCATION, "数据温度超过上限测点", upper=True),
        _spec(K.TEMP_EXCEED_LOWER, F.THRESHOLD, O.LOCATION, "数据温度低于下限测点", upper=False),
        _spec(K.HUMIDITY_EXCEED_UPPER, F.THRESHOLD, O.LOCATION, "数据湿度超过上限测点", metric="humidity", upper=True),
        _spec(K.HUMIDITY_EXCEED_LOWER, F.THRESHOLD, O.LOCATION, "数据湿度低于下限测点", metric="humidity", upper=False),
        _spec(K.TEMP_FIRST_REACH_UPPER_TIME, F.THRESHOLD, O.TIME, "数据温度第一次到达上限时间", upper=True),
        _spec(K.TEMP_FIRST_REACH_LOWER_TIME, F.THRESHOLD, O.TIME, "数据温度第一次到达下限时间", upper=False),
        # scalar aggregates and extremum location/time
        _spec(K.MAX_TEMP, F.SCALAR, O.NUMBER, "数据最高温度", precision=1),
        _spec(K.MIN_TEMP, F.SCALAR, O.NUMBER, "数据最低温度", precision=1),
        _spec(K.AVG_TEMP, F.SCALAR, O.NUMBER, "数据平均温度", precision=1),
        _spec(K.MAX_HUMIDITY, F.SCALAR, O.NUMBER, "数据最高湿度", precision=1, metric="humidity"),
        _spec(K.MIN_HUMIDITY, F.SCALAR, O.NUMBER, "数据最低湿度", precision=1, metric="humidity"),
        _spec(K.AVG_HUMIDITY, F.SCALAR, O.NUMBER, "数据平均湿度", precision=1, metric="humidity"),
        _spec(K.MAX_TEMP_LOCATION, F.SCALAR, O.LOCATION, "数据温度最高值对应测点"),
        _spec(K.MIN_TEMP_LOCATION, F.SCALAR, O.LOCATION, "数据温度最低值对应测点"),
        _spec(K.TEMP_MAX_TIME, F.SCALAR, O.TIME, "数据取最高点时间"),
        _spec(K.TEMP_MIN_TIME, F.SCALAR, O.TIME, "数据取最低点时间"),
        # minute-bucketed uniformity / variation
        _spec(K.TEMP_UNIFORMITY, F.UNIFORMITY, O.NUMBER, "数据温度均匀度值", precision=2),
        _spec(K.TEMP_VARIATION_RANGE_SUM, F.UNIFORMITY, O.NUMBER, "数据变化范围求和", precision=1),
        _spec(K.CENTER_POINT_TEMP_FLUCTUATION, F.UNIFORMITY, O.NUMBER, "数据中心点温度波动度", precision=2),
        _spec(K.TEMP_FLUCTUATION, F.UNIFORMITY, O.NUMBER, "温度波动度", uses_decimal_places=True),
        _spec(K.TEMP_UNIFORMITY_AVERAGE, F.UNIFORMITY, O.NUMBER, "温度均匀度", uses_decimal_places=True),
        _spec(K.TEMP_UNIFORMITY_MAX, F.UNIFORMITY, O.NUMBER, "数据温度均匀度计算最高温度", precision=1),
        _spec(K.TEMP_UNIFORMITY_MIN, F.UNIFORMITY, O.NUMBER, "数据温度均匀度计算最低", precision=1),
        _spec(K.TEMP_UNIFORMITY_VALUE, F.UNIFORMITY, O.NUMBER, "数据温度均匀度计算值", precision=2),
        # device-pairwise same-time difference
        _spec(K.MAX_TEMP_DIFF_AT_SAME_TIME, F.SAME_TIME, O.NUMBER, "同一时间各测点间最大温度差值", precision=1),
        _spec(K.MAX_TEMP_DIFF_TIME_POINT, F.SAME_TIME, O.TIME, "同一时间各测点间最大温度差时间点"),
        # cross-source and external values
        _spec(K.CENTER_POINT_TEMP_DEVIATION, F.EXTERNAL, O.NUMBER, "数据中心点温度偏差值",
              precision=1, roles=WINDOW_ROLES + (Role.CENTER_POINT,)),
        _spec(K.TEMP_AVG_DEVIATION, F.EXTERNAL, O.NUMBER, "数据温度平均偏差值", precision=1),
        _spec(K.POWER_CONSUMPTION_RATE, F.EXTERNAL, O.NUMBER, "耗电率计算", precision=2, roles=POWER_ROLES),
        _spec(K.MAX_POWER_USAGE_DURATION, F.EXTERNAL, O.NUMBER, "电量最长使用时长", precision=2, roles=POWER_ROLES),
        _spec(K.DEVICE_TIME_POINT_TEMP, F.EXTERNAL, O.NUMBER, "获取设备时间点温度", precision=2, roles=TIME_POINT_ROLES),
        _spec(K.AVG_COOLING_RATE, F.EXTERNAL, O.NUMBER, "平均降温速率", precision=3),
    )
}

TAG_TYPE_OUTPUTS: dict[TagType, Output] = {
    TagType.LOCATION: Output.LOCATION,
    TagType.NUMBER: Output.NUMBER,
    TagType.DATE: Output.TIME,
    TagType.DATETIME: Output.TIME,
}

DEFAULT_KINDS: dict[Output, FunctionKind] = {
    Output.LOCATION: FunctionKind.TEMP_REACH_UPPER,
    Output.NUMBER: FunctionKind.MAX_TEMP,
    Output.TIME: FunctionKind.TEMP_FIRST_REACH_UPPER_TIME,
}


# --- Typed calls, one shape per input set ---

@dataclass(frozen=True)
class WindowCall:
    spec: KindSpec
    location_tag_ids: tuple[str, ...]
    start_tag_id: str
    end_tag_id: str
    threshold: Optional[float] = None
    decimal_places: Optional[int] = None


@dataclass(frozen=True)
class CenterPointCall(WindowCall):
    center_point_tag_id: str = ""


@dataclass(frozen=True)
class AvgDeviationCall(WindowCall):
    max_temp_tag_id: Optional[str] = None
    min_temp_tag_id: Optional[str] = None
    max_temp: float = 8.0
    min_temp: float = 2.0


@dataclass(frozen=True)
class PowerCall:
    spec: KindSpec
    start_tag_id: str
    end_tag_id: str
    start_power_tag_id: str
    end_power_tag_id: str
    budget_percent: float = 90.0


@dataclass(frozen=True)
class TimePointCall:
    spec: KindSpec
    location_tag_ids: tuple[str, ...]
    time_tag_id: str


Call = Union[WindowCall, CenterPointCall, AvgDeviationCall, PowerCall, TimePointCall]


@dataclass
class Registry:
    defaults: MetricDefaults = field(default_factory=lambda: MetricDefaults.from_settings(settings))

    def spec_for(self, function_type: str) -> KindSpec:
        try:
            return KIND_SPECS[FunctionKind(function_type)]
        except ValueError:
            raise FunctionError(
                ErrorKind.UNKNOWN_KIND, "未知函数类型", f"函数类型: {function_type}"
            ) from None

    def kinds_for_tag_type(self, tag_type: TagType) -> list[KindSpec]:
        output = TAG_TYPE_OUTPUTS.get(tag_type)
        return [s for s in KIND_SPECS.values() if output is not None and s.output is output]

    def default_kind(self, tag_type: TagType) -> Optional[FunctionKind]:
        output = TAG_TYPE_OUTPUTS.get(tag_type)
        return DEFAULT_KINDS.get(output) if output is not None else None

    def _check_roles(self, spec: KindSpec, config: FunctionConfig, task_id: Optional[str]) -> None:
        present = {
            Role.TASK: task_id,
            Role.LOCATIONS: config.location_tag_ids,
            Role.START: config.start_tag_id,
            Role.END: config.end_tag_id,
            Role.CENTER_POINT: config.center_point_tag_id,
            Role.START_POWER: config.start_power_tag_id,
            Role.END_POWER: config.end_power_tag_id,
            Role.TIME: config.time_tag_id,
        }
        for role in spec.roles:
            if not present[role]:
                raise FunctionError(
                    ErrorKind.MISSING_INPUT, ROLE_MESSAGES[role], f"缺少输入: {role.value}"
                )

    def bind(self, config: FunctionConfig, task_id: Optional[str]) -> Call:
        spec = self.spec_for(config.function_type)
        self._check_roles(spec, config, task_id)

        if spec.roles == POWER_ROLES:
            return PowerCall(
                spec=spec,
                start_tag_id=config.start_tag_id,
                end_tag_id=config.end_tag_id,
                start_power_tag_id=config.start_power_tag_id,
                end_power_tag_id=config.end_power_tag_id,
                budget_percent=self.defaults.power_budget_percent,
            )
        if spec.roles == TIME_POINT_ROLES:
            return TimePointCall(
                spec=spec,
                location_tag_ids=tuple(config.location_tag_ids),
                time_tag_id=config.time_tag_id,
            )

        threshold = None
        if spec.upper is not None:
            threshold = config.threshold if config.threshold is not None else self.defaults.threshold_for(spec)
        places = None
        if spec.uses_decimal_places:
            places = config.decimal_places if config.decimal_places is not None else self.defaults.decimal_places

        common = dict(
            spec=spec,
            location_tag_ids=tuple(config.location_tag_ids),
            start_tag_id=config.start_tag_id,
            end_tag_id=config.end_tag_id,
            threshold=threshold,
            decimal_places=places,
        )
        if spec.kind is FunctionKind.CENTER_POINT_TEMP_DEVIATION:
            return CenterPointCall(center_point_tag_id=config.center_point_tag_id, **common)
        if spec.kind is FunctionKind.TEMP_AVG_DEVIATION:
            return AvgDeviationCall(
                max_temp_tag_id=config.max_temp_tag_id,
                min_temp_tag_id=config.min_temp_tag_id,
                max_temp=config.max_temp if config.max_temp is not None else self.defaults.avg_deviation_max_temp,
                min_temp=config.min_temp if config.min_temp is not None else self.defaults.avg_deviation_min_temp,
                **common,
            )
        return WindowCall(**common)

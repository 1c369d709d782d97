import pytest

from tagfunctions.core.config import Settings
from tagfunctions.domain.models import ErrorKind, FunctionError
from tagfunctions.domain.registry import (
    KIND_SPECS,
    AvgDeviationCall,
    CenterPointCall,
    FunctionKind,
    MetricDefaults,
    Output,
    PowerCall,
    TimePointCall,
    WindowCall,
)
from tagfunctions.domain.tags import FunctionConfig, TagType

from factories import TASK, config


def test_every_kind_is_registered():
    assert len(KIND_SPECS) == 36
    assert set(KIND_SPECS) == set(FunctionKind)


@pytest.mark.parametrize(
    "tag_type,output,count",
    [
        (TagType.LOCATION, Output.LOCATION, 10),
        (TagType.NUMBER, Output.NUMBER, 21),
        (TagType.DATE, Output.TIME, 5),
        (TagType.DATETIME, Output.TIME, 5),
    ],
)
def test_kinds_for_tag_type(registry, tag_type, output, count):
    specs = registry.kinds_for_tag_type(tag_type)
    assert len(specs) == count
    assert all(s.output is output for s in specs)


def test_default_kind(registry):
    assert registry.default_kind(TagType.LOCATION) is FunctionKind.TEMP_REACH_UPPER
    assert registry.default_kind(TagType.NUMBER) is FunctionKind.MAX_TEMP
    assert registry.default_kind(TagType.DATE) is FunctionKind.TEMP_FIRST_REACH_UPPER_TIME
    assert registry.default_kind(TagType.TEXT) is None
    assert registry.kinds_for_tag_type(TagType.IMAGE) == []


def test_unknown_kind(registry):
    with pytest.raises(FunctionError) as exc:
        registry.bind(config("tempTeleport"), TASK)
    assert exc.value.kind is ErrorKind.UNKNOWN_KIND
    assert exc.value.message == "未知函数类型"


def test_missing_task(registry):
    with pytest.raises(FunctionError) as exc:
        registry.bind(config("maxTemp"), None)
    assert exc.value.kind is ErrorKind.MISSING_INPUT
    assert exc.value.message == "未关联任务，无法计算"


def test_missing_locations(registry):
    with pytest.raises(FunctionError) as exc:
        registry.bind(config("maxTemp", location_tag_ids=[]), TASK)
    assert exc.value.kind is ErrorKind.MISSING_INPUT
    assert exc.value.message == "请选择至少一个布点标签"


def test_center_point_role_required(registry):
    with pytest.raises(FunctionError) as exc:
        registry.bind(config("centerPointTempDeviation"), TASK)
    assert exc.value.kind is ErrorKind.MISSING_INPUT

    call = registry.bind(config("centerPointTempDeviation", center_point_tag_id="cp"), TASK)
    assert isinstance(call, CenterPointCall)
    assert call.center_point_tag_id == "cp"


def test_power_needs_no_task_or_locations(registry):
    cfg = FunctionConfig(
        function_type="powerConsumptionRate",
        start_tag_id="start",
        end_tag_id="end",
        start_power_tag_id="p0",
        end_power_tag_id="p1",
    )
    call = registry.bind(cfg, None)
    assert isinstance(call, PowerCall)
    assert call.budget_percent == 90.0


def test_time_point_call(registry):
    cfg = FunctionConfig(function_type="deviceTimePointTemp", location_tag_ids=["loc"], time_tag_id="t")
    call = registry.bind(cfg, TASK)
    assert isinstance(call, TimePointCall)
    assert call.location_tag_ids == ("loc",)


@pytest.mark.parametrize(
    "kind,expected",
    [
        ("tempReachUpper", 8.0),
        ("tempExceedLower", 2.0),
        ("humidityReachUpper", 80.0),
        ("humidityExceedLower", 20.0),
        ("tempFirstReachLowerTime", 2.0),
        ("maxTemp", None),
    ],
)
def test_threshold_defaults(registry, kind, expected):
    assert registry.bind(config(kind), TASK).threshold == expected


def test_explicit_threshold_wins(registry):
    assert registry.bind(config("tempReachUpper", threshold=5), TASK).threshold == 5.0
    assert registry.bind(config("tempReachUpper", threshold=0), TASK).threshold == 0.0


def test_decimal_places(registry):
    assert registry.bind(config("tempFluctuation"), TASK).decimal_places == 2
    assert registry.bind(config("tempUniformityAverage", decimal_places=0), TASK).decimal_places == 0
    assert registry.bind(config("maxTemp", decimal_places=4), TASK).decimal_places is None


def test_avg_deviation_literals(registry):
    call = registry.bind(config("tempAvgDeviation"), TASK)
    assert isinstance(call, AvgDeviationCall)
    assert (call.max_temp, call.min_temp) == (8.0, 2.0)

    call = registry.bind(config("tempAvgDeviation", max_temp=10, min_temp_tag_id="lo"), TASK)
    assert call.max_temp == 10.0
    assert call.min_temp_tag_id == "lo"


def test_plain_window_call(registry):
    call = registry.bind(config("avgCoolingRate"), TASK)
    assert type(call) is WindowCall


def test_defaults_follow_settings():
    defaults = MetricDefaults.from_settings(Settings(temp_upper_threshold=10, detail_preview_lines=3))
    assert defaults.temp_upper == 10.0
    assert defaults.preview_lines == 3


def test_config_accepts_camel_case():
    cfg = FunctionConfig.model_validate(
        {"functionType": "maxTemp", "locationTagIds": ["loc"], "startTagId": "s", "endTagId": "e"}
    )
    assert cfg.location_tag_ids == ["loc"]
    assert cfg.start_tag_id == "s"


def test_null_location_list_reads_as_empty():
    cfg = FunctionConfig.model_validate({"functionType": "maxTemp", "locationTagIds": None})
    assert cfg.location_tag_ids == []

import math

from tagfunctions.domain.formatter import (
    failure,
    fixed,
    preview,
    query_info,
    render,
    round_value,
    success,
)
from tagfunctions.domain.models import Computation, ErrorKind, FunctionError, RunStatus
from tagfunctions.domain.registry import KIND_SPECS, FunctionKind

from factories import at


def test_fixed_rounds_half_up_on_the_binary_value():
    assert fixed(0.125, 2) == "0.13"
    assert fixed(-0.125, 2) == "-0.13"
    assert fixed(2.5, 0) == "3"
    # 1.005 is stored as 1.00499...
    assert fixed(1.005, 2) == "1.00"
    assert fixed(3, 2) == "3.00"


def test_render_matches_editor_numbers():
    assert render(15.0) == "15"
    assert render(1.5) == "1.5"
    assert render(-0.25) == "-0.25"
    assert render(math.nan) == "NaN"
    assert render(math.inf) == "Infinity"
    assert render("A | B") == "A | B"
    assert render(None) == ""


def test_round_value_passes_non_finite_through():
    assert math.isnan(round_value(math.nan, 2))
    assert round_value(math.inf, 2) == math.inf
    assert round_value(5.75, 1) == 5.8


def test_success_applies_kind_precision():
    result = success(KIND_SPECS[FunctionKind.MAX_TEMP], Computation(value=12.345, lines=["结果: {value}"]))
    assert result.status is RunStatus.SUCCESS
    assert result.ok
    assert result.value == 12.3
    assert result.message == "计算完成：12.3"
    assert result.detail == "结果: 12.3"
    assert result.error is None


def test_success_prepends_query_info():
    result = success(KIND_SPECS[FunctionKind.MAX_TEMP], Computation(value=1, lines=["x {value}"]), "info")
    assert result.detail == "info\nx 1"


def test_success_prefix_and_explicit_places():
    comp = Computation(value=1.23456, places=3, prefix="±")
    result = success(KIND_SPECS[FunctionKind.TEMP_FLUCTUATION], comp)
    assert result.value == 1.235
    assert result.message == "计算完成：±1.235"
    assert result.detail is None


def test_string_values_are_not_rounded():
    result = success(KIND_SPECS[FunctionKind.MAX_TEMP_LOCATION], Computation(value="A | B"))
    assert result.value == "A | B"


def test_failure_carries_kind_and_no_value():
    result = failure(FunctionError(ErrorKind.NO_DATA, "没有数据", "detail"))
    assert result.status is RunStatus.ERROR
    assert result.value is None
    assert result.error is ErrorKind.NO_DATA
    assert result.to_dict() == {
        "status": "error",
        "message": "没有数据",
        "value": None,
        "detail": "detail",
        "error": "NoData",
    }


def test_query_info_lines():
    info = query_info([], at(0), at(60), 0)
    assert info.splitlines() == ["查询设备: 无", "本地时间: 2024/01/15 09:00 ~ 2024/01/15 10:00", "命中: 0 条"]


def test_preview_truncates():
    lines = [str(i) for i in range(12)]
    shown = preview(lines, 10)
    assert shown[:10] == lines[:10]
    assert shown[-1] == "... 共 12 条"
    assert preview(lines[:3], 10) == lines[:3]


def test_fixed_handles_values_beyond_default_decimal_precision():
    assert fixed(2e18, 10) == "2000000000000000000.0000000000"
    assert fixed(1e27, 1) == "1000000000000000013287555072.0"
    assert round_value(2e18, 10) == 2e18

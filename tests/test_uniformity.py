import pytest

from tagfunctions.domain.evaluator import Evaluator
from tagfunctions.domain.models import ErrorKind
from tagfunctions.domain.registry import MetricDefaults, Registry
from tagfunctions.domain.uniformity import BucketStats, paired_sums

from factories import TASK, at, bucket_readings, config, reading, window_tags

PAIRS = [(10, 2), (12, 3), (9, 1), (11, 4)]


def _bucket(i, hi, lo):
    return BucketStats(key=f"k{i}", max=hi, min=lo, avg=(hi + lo) / 2)


def test_same_time_difference_picks_widest_bucket(run):
    data = [
        reading("A", at(0), 2.0),
        reading("B", at(0), 6.0),
        reading("A", at(1), 3.0),
        reading("B", at(1), 4.0),
    ]
    result = run("maxTempDiffAtSameTime", data)
    assert result.value == 4.0
    assert "对应时间点: 2024-01-15 09:00" in result.detail
    assert run("maxTempDiffTimePoint", data).value == "2024-01-15 09:00"


def test_same_time_difference_tie_keeps_earliest(run):
    data = [
        reading("A", at(2), 1.0),
        reading("B", at(2), 5.0),
        reading("A", at(0), 3.0),
        reading("B", at(0), 7.0),
    ]
    assert run("maxTempDiffTimePoint", data).value == "2024-01-15 09:00"


def test_seconds_share_a_minute_bucket(run):
    data = [reading("A", at(0, 5), 1.0), reading("B", at(0, 55), 9.0), reading("A", at(1), 5.0)]
    assert run("maxTempDiffAtSameTime", data).value == 8.0


def test_paired_sums_even():
    points = [_bucket(i, hi, lo) for i, (hi, lo) in enumerate(PAIRS)]
    assert paired_sums(points) == (42, 10)


def test_paired_sums_odd_counts_middle_once():
    points = [_bucket(i, hi, lo) for i, (hi, lo) in enumerate(PAIRS[:3])]
    assert paired_sums(points) == (31, 6)


def test_uniformity_pairing_kinds(run):
    data = bucket_readings(PAIRS)
    assert run("tempUniformityMax", data).value == 42.0
    assert run("tempUniformityMin", data).value == 10.0
    result = run("tempUniformityValue", data)
    assert result.value == 8.0
    assert "时间点数量: 4" in result.detail


def test_pairing_ignores_reading_order(run):
    data = bucket_readings(PAIRS)
    assert run("tempUniformityValue", data[::-1]).value == 8.0


def test_uniformity_over_window_minutes(run):
    # A spans 9..12 and B spans 1..4 over a 60 minute window
    result = run("tempUniformity", bucket_readings(PAIRS))
    assert result.value == 0.1
    assert "时间范围: 60 分钟" in result.detail


def test_uniformity_needs_a_positive_interval(run):
    tags = window_tags(start="2024-01-15 09:00", end="2024-01-15 09:00")
    result = run("tempUniformity", [reading("A", at(0), 1.0)], tags=tags)
    assert result.error is ErrorKind.INVALID_INTERVAL


def test_variation_range_sum(run):
    assert run("tempVariationRangeSum", bucket_readings(PAIRS)).value == 6.0


def test_center_point_fluctuation(run):
    assert run("centerPointTempFluctuation", bucket_readings(PAIRS)).value == 5.5


def test_fluctuation_uses_decimal_places(run):
    data = [reading("A", at(0), 2.0), reading("B", at(1), 7.3333)]
    result = run("tempFluctuation", data)
    assert result.value == 2.67
    assert result.message == "计算完成：±2.67"
    assert run("tempFluctuation", data, decimal_places=0).value == 3.0


def test_uniformity_average(run):
    result = run("tempUniformityAverage", bucket_readings(PAIRS))
    assert result.value == 8.0
    assert "1. 2024-01-15 09:00 差值:8.00" in result.detail


def test_bucket_listing_is_truncated(store):
    pairs = [(10 + i, i) for i in range(12)]
    store.load_task(TASK, bucket_readings(pairs))
    evaluator = Evaluator(store, Registry(MetricDefaults(preview_lines=5)))
    result = evaluator.evaluate(config("tempUniformityValue"), TASK, window_tags())
    assert result.ok
    assert "... 共 12 条" in result.detail
    assert "5: 2024-01-15 09:05" not in result.detail


def test_only_nan_temperatures(run):
    result = run("tempUniformityValue", [reading("A", at(0), float("nan"))])
    assert result.error is ErrorKind.NO_DATA
    assert result.message == "没有有效的温度数据"


@pytest.mark.parametrize("kind", ["tempUniformityMax", "maxTempDiffAtSameTime", "tempVariationRangeSum"])
def test_location_filter_applies(run, kind):
    data = bucket_readings(PAIRS) + [reading("C", at(0), 100.0)]
    assert run(kind, data).value == run(kind, bucket_readings(PAIRS)).value


def test_fluctuation_of_huge_values_at_many_places(run):
    data = [reading("A", at(0), 0.0), reading("B", at(1), 4e18)]
    result = run("tempFluctuation", data, decimal_places=10)
    assert result.ok
    assert result.value == 2e18

from datetime import datetime, timezone

from tagfunctions.domain.normalize import (
    distinct_locations,
    index_tags,
    is_blank,
    parse_date_value,
    parse_number,
    to_location_set,
)
from tagfunctions.domain.tags import TagType

from factories import location, tag


def test_location_set_splits_on_all_separators():
    assert to_location_set("A|B, C，D") == ["A", "B", "C", "D"]


def test_location_set_dedupes_and_drops_empties():
    assert to_location_set("A||A| B ,") == ["A", "B"]
    assert to_location_set("") == []
    assert to_location_set(None) == []


def test_location_set_keeps_list_items_whole():
    assert to_location_set(["A", " B|C ", "", "A"]) == ["A", "B|C"]


def test_distinct_locations_skips_missing_and_wrong_type():
    tags = index_tags([
        location("l1", "A|B"),
        location("l2", ["B", "C"]),
        tag("txt", "Z", TagType.TEXT),
    ])
    assert distinct_locations(["l1", "missing", "txt", "l2"], tags) == ["A", "B", "C"]


def test_index_tags_first_wins():
    tags = index_tags([tag("x", 1), tag("x", 2), tag("y", 3)])
    assert tags["x"].value == 1
    assert set(tags) == {"x", "y"}


def test_date_only_is_local_midnight():
    assert parse_date_value("2024-01-15") == (datetime(2024, 1, 15), True)


def test_space_separated_datetime():
    assert parse_date_value("2024-01-15 09:30") == (datetime(2024, 1, 15, 9, 30), False)
    assert parse_date_value("2024-01-15T09:30:15") == (datetime(2024, 1, 15, 9, 30, 15), False)


def test_slash_format_fallback():
    assert parse_date_value("2024/01/15 09:30") == (datetime(2024, 1, 15, 9, 30), False)


def test_offset_is_converted_to_local_wall_clock():
    expected = datetime(2024, 1, 15, 1, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert parse_date_value("2024-01-15T01:00:00Z") == (expected, False)


def test_epoch_milliseconds():
    assert parse_date_value(1705300000000) == (datetime.fromtimestamp(1705300000), False)


def test_unparseable_dates_never_raise():
    assert parse_date_value("not a date") == (None, False)
    assert parse_date_value("") == (None, False)
    assert parse_date_value(None) == (None, False)
    assert parse_date_value(True) == (None, False)


def test_parse_number_reads_leading_number():
    assert parse_number("12.5℃") == 12.5
    assert parse_number(" -4e2x") == -400.0
    assert parse_number(3) == 3.0
    assert parse_number("abc") is None
    assert parse_number(True) is None
    assert parse_number(float("nan")) is None


def test_is_blank():
    assert is_blank(None)
    assert is_blank("")
    assert not is_blank(0)
    assert not is_blank(" ")


def test_native_list_matches_string_form():
    assert to_location_set(["A", "B", "C", "D"]) == to_location_set("A|B, C，D")

import pytest

from app.services.durations import (
    parse_bare_number, parse_clock, parse_minutes, parse_short_clock, parse_unit_suffixed
)


@pytest.mark.parametrize("value, expected", [
    ("1:02:30", 63),
    ("01:02:30", 63),
    ("0:45:00", 45),
    ("0:00:29", 0),
    ("0:00:30", 1),
])
def test_clock_format(value, expected):
    assert parse_minutes(value) == expected


@pytest.mark.parametrize("value, expected", [
    ("2h 25m", 145),
    ("2h25m", 145),
    ("49m 21s", 49),
    ("49m 30s", 50),
    ("1h", 60),
    ("55m", 55),
    ("1H 5M", 65),
    ("30s 1h", 61),
])
def test_unit_suffixed_format(value, expected):
    assert parse_minutes(value) == expected


def test_bare_number_is_minutes():
    assert parse_minutes("42") == 42
    assert parse_minutes(" 42.6 ") == 43


def test_empty_and_unknown_are_none_not_zero():
    assert parse_minutes("") is None
    assert parse_minutes("   ") is None
    assert parse_minutes(None) is None
    assert parse_minutes("n/a") is None


def test_zero_units_is_a_real_zero():
    assert parse_minutes("0m 0s") == 0
    assert parse_minutes("0:00:00") == 0


def test_short_clock_reads_minutes_and_seconds():
    assert parse_minutes("45:00") == 45
    assert parse_minutes("12:40") == 13


def test_strategies_report_no_match_instead_of_raising():
    assert parse_clock("45:00") is None
    assert parse_short_clock("1:02:30") is None
    assert parse_unit_suffixed("42") is None
    assert parse_bare_number("2h") is None
    assert parse_bare_number("nan") is None


@pytest.mark.parametrize("value, expected", [
    ("1.5h", 90),
    ("0.5h 15m", 45),
    ("2.5m", 3),
    ("90.0s", 2),
])
def test_decimal_unit_amounts(value, expected):
    assert parse_minutes(value) == expected


@pytest.mark.parametrize("value", [
    "1e30",
    "99999999999999999999h",
    "9" * 400 + "m",
    "1e400",
    "-5",
])
def test_out_of_range_durations_are_unknown(value):
    assert parse_minutes(value) is None


def test_largest_storable_duration_is_kept():
    assert parse_minutes(str(2 ** 31 - 1)) == 2 ** 31 - 1
    assert parse_minutes(str(2 ** 31)) is None

import pytest

from timesync_client.errors import InvalidInput
from timesync_client.timesheet import (
    MINUTES_TO_DECIMAL,
    annotate_hour_log,
    calculate_total_hours,
    elapsed_minutes,
    hours_between,
    minutes_to_decimal,
    minutes_to_time_string,
    time_to_minutes,
)


@pytest.mark.parametrize(
    "minutes, expected",
    [(90, 1.5), (45, 0.75), (0, 0.0), (60, 1.0), (7, 0.12), (125, 2.08), (480, 8.0)],
)
def test_minutes_to_decimal(minutes, expected):
    assert minutes_to_decimal(minutes) == expected


def test_table_covers_every_minute_of_an_hour():
    assert sorted(MINUTES_TO_DECIMAL) == list(range(1, 61))
    assert MINUTES_TO_DECIMAL[60] == 1.0


def test_negative_minutes_rejected():
    with pytest.raises(InvalidInput):
        minutes_to_decimal(-5)


def test_span_across_midnight():
    start, end = time_to_minutes("23:30"), time_to_minutes("00:15")
    assert elapsed_minutes(start, end) == 45
    assert calculate_total_hours(start, end) == 0.75


def test_same_day_span():
    assert hours_between("08:00", "09:30") == 1.5


@pytest.mark.parametrize("value", ["8", "25:00", "ab:cd", "12:60", ""])
def test_time_to_minutes_rejects_malformed(value):
    with pytest.raises(InvalidInput):
        time_to_minutes(value)


def test_time_string_round_trip_formatting():
    assert time_to_minutes("08:05") == 485
    assert minutes_to_time_string(485) == "08:05"
    assert minutes_to_time_string(0) == "00:00"


def test_annotate_hour_log_from_times():
    record = {"id": "log1", "start_time": "23:30", "end_time": "00:15"}
    annotated = annotate_hour_log(record)
    assert annotated["decimal_hours"] == 0.75
    assert "decimal_hours" not in record


def test_annotate_hour_log_falls_back_to_totalsum():
    annotated = annotate_hour_log({"id": "log2", "start_time": "bad", "end_time": "10:00", "totalsum": 2.5})
    assert annotated["decimal_hours"] == 2.5


def test_annotate_hour_log_without_duration_is_untouched():
    record = {"id": "log3", "kommentar": "call"}
    assert annotate_hour_log(record) is record

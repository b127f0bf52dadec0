from datetime import date, datetime, timezone

import pytest

from services.errors import InvalidTimeZoneError, ValidationError
from services.timezones import (
    add_days,
    civil_date_in_zone,
    civil_date_to_utc,
    civil_time_label_in_zone,
    day_label,
    format_utc_instant,
    list_dates_between,
    list_dates_from_start,
    minutes_since_midnight_in_zone,
    weekday_index_for_date,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestCivilDateToUtc:
    def test_standard_time(self):
        assert civil_date_to_utc("2025-03-03", 9 * 60, "America/Los_Angeles") == utc(2025, 3, 3, 17, 0)

    def test_day_before_spring_forward(self):
        assert civil_date_to_utc(date(2025, 3, 8), 9 * 60, "America/Los_Angeles") == utc(2025, 3, 8, 17, 0)

    def test_spring_forward_day_uses_daylight_offset(self):
        # the naive guess (09:00Z) is still in PST; the result (16:00Z) is PDT
        assert civil_date_to_utc("2025-03-09", 9 * 60, "America/Los_Angeles") == utc(2025, 3, 9, 16, 0)

    def test_fall_back_day_uses_standard_offset(self):
        assert civil_date_to_utc("2025-11-02", 9 * 60, "America/Los_Angeles") == utc(2025, 11, 2, 17, 0)

    def test_london_summer_time_start(self):
        assert civil_date_to_utc("2025-03-30", 12 * 60, "Europe/London") == utc(2025, 3, 30, 11, 0)

    def test_end_of_day_is_next_midnight(self):
        assert civil_date_to_utc("2025-03-03", 1440, "UTC") == utc(2025, 3, 4, 0, 0)

    def test_round_trip_across_dst_week(self):
        for day in range(5, 14):
            instant = civil_date_to_utc(date(2025, 3, day), 10 * 60 + 30, "America/New_York")
            assert civil_date_in_zone(instant, "America/New_York") == date(2025, 3, day)
            assert minutes_since_midnight_in_zone(instant, "America/New_York") == 630

    def test_invalid_zone_raises(self):
        with pytest.raises(InvalidTimeZoneError):
            civil_date_to_utc("2025-03-03", 0, "Mars/Olympus_Mons")

    def test_invalid_date_raises(self):
        with pytest.raises(ValidationError):
            civil_date_to_utc("03/03/2025", 0, "UTC")


def test_civil_date_in_zone_crosses_midnight():
    assert civil_date_in_zone(utc(2025, 3, 3, 3, 0), "America/Los_Angeles") == date(2025, 3, 2)
    assert civil_date_in_zone(utc(2025, 3, 3, 20, 0), "Asia/Tokyo") == date(2025, 3, 4)


@pytest.mark.parametrize(
    "instant, expected",
    [
        (utc(2025, 3, 3, 17, 5), "9:05 AM"),
        (utc(2025, 3, 3, 20, 0), "12:00 PM"),
        (utc(2025, 3, 3, 8, 30), "12:30 AM"),
        (utc(2025, 3, 4, 4, 45), "8:45 PM"),
    ],
)
def test_time_label(instant, expected):
    assert civil_time_label_in_zone(instant, "America/Los_Angeles") == expected


def test_minutes_since_midnight():
    assert minutes_since_midnight_in_zone(utc(2025, 3, 3, 17, 5), "America/Los_Angeles") == 545
    assert minutes_since_midnight_in_zone(utc(2025, 3, 3, 0, 0), "UTC") == 0


def test_weekday_index_is_sunday_based():
    assert weekday_index_for_date("2025-03-02", "UTC") == 0
    assert weekday_index_for_date("2025-03-03", "America/Los_Angeles") == 1
    assert weekday_index_for_date("2025-03-08", "Pacific/Kiritimati") == 6
    assert day_label(1) == "Mon"
    assert day_label(9) == "Sun"


def test_add_days_crosses_month_and_year():
    assert add_days("2025-02-28", 1) == date(2025, 3, 1)
    assert add_days("2024-12-31", 1) == date(2025, 1, 1)
    assert add_days("2025-03-01", -1) == date(2025, 2, 28)


def test_list_dates_between():
    assert list_dates_between("2025-03-03", "2025-03-03") == [date(2025, 3, 3)]
    assert list_dates_between("2025-03-02", "2025-03-03") == [date(2025, 3, 2), date(2025, 3, 3)]


def test_list_dates_between_is_capped_but_keeps_end():
    dates = list_dates_between("2025-03-01", "2025-03-20")
    assert len(dates) == 9
    assert dates[0] == date(2025, 3, 1)
    assert dates[7] == date(2025, 3, 8)
    assert dates[-1] == date(2025, 3, 20)


def test_list_dates_from_start_is_clamped():
    assert len(list_dates_from_start("2025-03-01", 100)) == 62
    assert list_dates_from_start("2025-03-01", 0) == [date(2025, 3, 1)]
    assert list_dates_from_start("2025-03-01", 3)[-1] == date(2025, 3, 3)


def test_format_utc_instant():
    assert format_utc_instant(utc(2025, 3, 3, 17, 5)) == "2025-03-03T17:05:00.000Z"
    assert format_utc_instant(datetime(2025, 3, 3, 17, 5)) == "2025-03-03T17:05:00.000Z"

from datetime import date

from conftest import make_meeting_type

from services.meeting_types import (
    clean_weekly_rows,
    default_meeting_type,
    effective_time_zone,
    slugify,
    unique_slug,
)
from services.models import ScheduleSettings, WeeklyAvailability


def travel_settings(**overrides):
    values = dict(
        admin_username="neil",
        primary_timezone="America/Los_Angeles",
        travel_mode_enabled=True,
        travel_timezone="Europe/London",
        travel_start_date=date(2025, 3, 1),
        travel_end_date=date(2025, 3, 10),
    )
    values.update(overrides)
    return ScheduleSettings(**values)


class TestEffectiveTimeZone:
    def test_meeting_default_without_settings(self):
        meeting_type = make_meeting_type(timezone_default="Asia/Tokyo")
        assert effective_time_zone(meeting_type, "2025-03-05") == "Asia/Tokyo"

    def test_primary_zone_overrides_meeting_default(self):
        meeting_type = make_meeting_type(timezone_default="Asia/Tokyo")
        settings = travel_settings(travel_mode_enabled=False)
        assert effective_time_zone(meeting_type, "2025-03-05", settings) == "America/Los_Angeles"

    def test_travel_window_uses_travel_zone(self):
        meeting_type = make_meeting_type(timezone_default="Asia/Tokyo")
        assert effective_time_zone(meeting_type, "2025-03-05", travel_settings()) == "Europe/London"

    def test_travel_window_is_inclusive(self):
        meeting_type = make_meeting_type()
        settings = travel_settings()
        assert effective_time_zone(meeting_type, date(2025, 3, 1), settings) == "Europe/London"
        assert effective_time_zone(meeting_type, date(2025, 3, 10), settings) == "Europe/London"
        assert effective_time_zone(meeting_type, date(2025, 2, 28), settings) == "America/Los_Angeles"

    def test_outside_travel_window_uses_base_zone(self):
        meeting_type = make_meeting_type()
        assert effective_time_zone(meeting_type, "2025-03-15", travel_settings()) == "America/Los_Angeles"

    def test_incomplete_travel_window_is_ignored(self):
        meeting_type = make_meeting_type()
        settings = travel_settings(travel_end_date=None)
        assert effective_time_zone(meeting_type, "2025-03-05", settings) == "America/Los_Angeles"


def test_slugify():
    assert slugify("Intro Call") == "intro-call"
    assert slugify("  Piano: Lesson #1!! ") == "piano-lesson-1"
    assert slugify("***") == "meeting"


def test_unique_slug_appends_counter():
    owners = {"intro-call": "a", "intro-call-2": "b"}
    assert unique_slug("intro-call", owners.get) == "intro-call-3"
    assert unique_slug("other", owners.get) == "other"


def test_unique_slug_keeps_own_slug():
    owners = {"intro-call": "a"}
    assert unique_slug("intro-call", owners.get, "a") == "intro-call"


def test_default_meeting_type():
    meeting_type = default_meeting_type("neil")
    assert meeting_type.name == "Intro Call"
    assert meeting_type.slug == "intro-call"
    assert meeting_type.duration_minutes == 30
    assert (meeting_type.buffer_before_minutes, meeting_type.buffer_after_minutes) == (5, 5)
    assert meeting_type.min_notice_minutes == 120
    assert meeting_type.max_horizon_days == 30
    assert meeting_type.timezone_default == "America/Los_Angeles"
    assert meeting_type.availability_mode == "all"
    assert meeting_type.admin_username == "neil"


def test_clean_weekly_rows_drops_invalid_ranges():
    rows = [
        WeeklyAvailability(day_of_week=1, start_time_minutes=540, end_time_minutes=720),
        WeeklyAvailability(day_of_week=2, start_time_minutes=720, end_time_minutes=540),
        WeeklyAvailability(day_of_week=3, start_time_minutes=-10, end_time_minutes=60),
        WeeklyAvailability(day_of_week=4, start_time_minutes=1400, end_time_minutes=1500),
    ]
    cleaned = clean_weekly_rows(rows, "mt-9")
    assert [row.day_of_week for row in cleaned] == [1]
    assert cleaned[0].meeting_type_id == "mt-9"
    assert cleaned[0].id

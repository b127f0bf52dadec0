from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, TypeVar
from uuid import uuid4

from .models import DEFAULT_HEADER_SUBTEXT, MeetingType, ScheduleSettings, WeeklyWindow
from .timezones import MINUTES_PER_DAY, DateLike, parse_civil_date

DEFAULT_MEETING_NAME = "Intro Call"
DEFAULT_MEETING_TIMEZONE = "America/Los_Angeles"

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")

W = TypeVar("W", bound=WeeklyWindow)


def effective_time_zone(
    meeting_type: MeetingType,
    day: DateLike,
    settings: Optional[ScheduleSettings] = None,
) -> str:
    """Zone the meeting type runs on for one civil date.

    Travel mode swaps in the travel zone for dates inside the inclusive
    travel window; everything else uses the admin's primary zone, or the
    meeting type's own default when the admin has no settings row.
    """
    primary = settings.primary_timezone if settings else meeting_type.timezone_default
    if (
        settings
        and settings.travel_mode_enabled
        and settings.travel_timezone
        and settings.travel_start_date
        and settings.travel_end_date
    ):
        civil = parse_civil_date(day)
        if settings.travel_start_date <= civil <= settings.travel_end_date:
            return settings.travel_timezone
    return primary


def slugify(value: str) -> str:
    slug = _SLUG_INVALID.sub("-", (value or "").lower()).strip("-")
    return slug or "meeting"


def unique_slug(
    base: str,
    owner_of: Callable[[str], Optional[str]],
    meeting_type_id: Optional[str] = None,
) -> str:
    """First free slug among ``base``, ``base-2``, ``base-3``...

    ``owner_of`` returns the id of the meeting type holding a slug, if any.
    A slug held by ``meeting_type_id`` itself is not a collision.
    """
    slug = base
    counter = 1
    while True:
        owner = owner_of(slug)
        if owner is None or (meeting_type_id and owner == meeting_type_id):
            return slug
        counter += 1
        slug = f"{base}-{counter}"


def default_meeting_type(
    admin_username: str,
    *,
    name: str = DEFAULT_MEETING_NAME,
    timezone_default: str = DEFAULT_MEETING_TIMEZONE,
) -> MeetingType:
    now = datetime.now(tz=timezone.utc)
    return MeetingType(
        id=str(uuid4()),
        slug=slugify(name),
        name=name,
        admin_username=admin_username,
        location="Zoom",
        duration_minutes=30,
        buffer_before_minutes=5,
        buffer_after_minutes=5,
        min_notice_minutes=120,
        max_horizon_days=30,
        timezone_default=timezone_default,
        availability_mode="all",
        busy_buffer_percent=60,
        busy_pattern_version=1,
        daily_limit=4,
        show_header=False,
        header_subtext=DEFAULT_HEADER_SUBTEXT,
        no_overnight_slots=True,
        allow_public_reschedule=False,
        created_at=now,
        updated_at=now,
    )


def default_schedule_settings(admin_username: str, primary_timezone: str) -> ScheduleSettings:
    return ScheduleSettings(
        admin_username=admin_username,
        primary_timezone=primary_timezone,
        updated_at=datetime.now(tz=timezone.utc),
    )


def clean_weekly_rows(rows: Iterable[W], meeting_type_id: str) -> List[W]:
    cleaned: List[W] = []
    for row in rows:
        if row.start_time_minutes < 0 or row.end_time_minutes > MINUTES_PER_DAY:
            continue
        if row.end_time_minutes <= row.start_time_minutes:
            continue
        row.meeting_type_id = meeting_type_id
        row.id = row.id or str(uuid4())
        cleaned.append(row)
    return cleaned

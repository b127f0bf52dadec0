"""Admin-side configuration of meeting types, weekly hours and blackouts."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from services.errors import AdminRequiredError, NotFoundError, ValidationError
from services.meeting_types import (
    DEFAULT_MEETING_TIMEZONE,
    clean_weekly_rows,
    default_meeting_type,
    default_schedule_settings,
)
from services.models import (
    AVAILABILITY_MODES,
    Blackout,
    MeetingType,
    ScheduleSettings,
    WeeklyAvailability,
    WeeklyBlackout,
)
from services.supabase_client import SupabaseClient
from services.timezones import MINUTES_PER_DAY, civil_date_to_utc, get_zone, parse_civil_date

from .lookups import require_meeting_type

LOG = logging.getLogger(__name__)


def _require_admin(admin_username: Optional[str]) -> str:
    admin = (admin_username or "").strip()
    if not admin:
        raise AdminRequiredError("Admin session required.")
    return admin


def _clock_minutes(value: Optional[str], default: int) -> int:
    if not value:
        return default
    hours, _, minutes = value.partition(":")
    try:
        return int(hours or 0) * 60 + int(minutes or 0)
    except ValueError as exc:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM") from exc


def _optional_date(value: Any):
    return parse_civil_date(value) if value else None


async def overview(
    db: SupabaseClient,
    admin_username: Optional[str],
    meeting_type_id: Optional[str] = None,
    slug: Optional[str] = None,
) -> Dict[str, Any]:
    admin = _require_admin(admin_username)
    meeting_types = await db.list_meeting_types(admin)
    if not meeting_types:
        meeting_types = [await db.ensure_meeting_type(admin)]

    meeting_type = None
    if meeting_type_id or slug:
        meeting_type = await db.get_meeting_type(meeting_type_id, slug, admin)
    meeting_type = meeting_type or meeting_types[0]

    inputs = await db.load_schedule_inputs(meeting_type)
    settings = inputs.schedule_settings or default_schedule_settings(admin, meeting_type.timezone_default)
    return {
        "meeting_type": meeting_type.to_row(),
        "availability": [row.to_row() for row in inputs.availability],
        "weekly_blackouts": [row.to_row() for row in inputs.weekly_blackouts],
        "blackouts": [row.to_row() for row in inputs.blackouts],
        "bookings": [row.to_row() for row in inputs.bookings],
        "meeting_types": [item.to_row() for item in meeting_types],
        "schedule_settings": settings.to_row(),
    }


async def public_meeting_type(
    db: SupabaseClient,
    meeting_type_id: Optional[str] = None,
    slug: Optional[str] = None,
) -> Dict[str, Any]:
    meeting_type = await require_meeting_type(db, meeting_type_id, slug)
    settings = await db.get_schedule_settings(meeting_type.admin_username)
    if settings:
        meeting_type = replace(meeting_type, timezone_default=settings.primary_timezone)
    return {"meeting_type": meeting_type.to_row()}


async def create_meeting_type(db: SupabaseClient, admin_username: Optional[str], name: Optional[str]) -> Dict[str, Any]:
    admin = _require_admin(admin_username)
    name = (name or "").strip()
    if not name:
        raise ValidationError("new_meeting_type_name is required.")
    settings = await db.get_schedule_settings(admin)
    meeting_type = default_meeting_type(
        admin,
        name=name,
        timezone_default=settings.primary_timezone if settings else DEFAULT_MEETING_TIMEZONE,
    )
    saved = await db.upsert_meeting_type(meeting_type)
    LOG.info("meeting type created", extra={"meeting_type_id": saved.id, "slug": saved.slug})
    return {"meeting_type": saved.to_row()}


def _meeting_type_from_payload(admin: str, payload: Dict[str, Any], existing: Optional[MeetingType]) -> MeetingType:
    now = datetime.now(tz=timezone.utc)
    mode = payload.get("availability_mode") or "all"
    if mode not in AVAILABILITY_MODES:
        raise ValidationError(f"Unknown availability mode '{mode}'")
    time_zone = payload.get("timezone_default") or "UTC"
    get_zone(time_zone)

    def value(key: str, default: Any) -> Any:
        item = payload.get(key)
        return default if item is None else item

    return MeetingType(
        id=payload.get("id") or str(uuid4()),
        slug=payload.get("slug") or payload["name"],
        name=payload["name"],
        admin_username=admin,
        location=value("location", "Zoom"),
        duration_minutes=value("duration_minutes", 30),
        buffer_before_minutes=value("buffer_before_minutes", 0),
        buffer_after_minutes=value("buffer_after_minutes", 0),
        min_notice_minutes=value("min_notice_minutes", 120),
        max_horizon_days=value("max_horizon_days", 30),
        timezone_default=time_zone,
        availability_mode=mode,
        busy_buffer_percent=value("busy_buffer_percent", 40),
        busy_pattern_version=value("busy_pattern_version", 1),
        daily_limit=value("daily_limit", 0),
        show_header=bool(payload.get("show_header")),
        header_subtext=str(payload.get("header_subtext") or ""),
        no_overnight_slots=bool(value("no_overnight_slots", True)),
        allow_public_reschedule=bool(payload.get("allow_public_reschedule")),
        created_at=existing.created_at if existing and existing.created_at else now,
        updated_at=now,
    )


def _weekly_rows(cls, rows: Iterable[Dict[str, Any]]) -> List[Any]:
    return [
        cls(
            id=row.get("id"),
            day_of_week=int(row.get("day_of_week") or 0),
            start_time_minutes=int(row.get("start_time_minutes") or 0),
            end_time_minutes=int(row.get("end_time_minutes") or 0),
        )
        for row in rows
    ]


async def save_meeting_type(
    db: SupabaseClient,
    admin_username: Optional[str],
    payload: Optional[Dict[str, Any]],
    availability: Optional[List[Dict[str, Any]]] = None,
    weekly_blackouts: Optional[List[Dict[str, Any]]] = None,
    schedule_settings: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Upsert a meeting type and, when given, its settings and weekly rows.

    ``availability`` and ``weekly_blackouts`` replace the stored rows
    wholesale; rows outside the day or with an empty range are dropped.
    """
    admin = _require_admin(admin_username)
    if not payload or not payload.get("name"):
        raise ValidationError("Meeting type name is required.")
    existing = None
    if payload.get("id"):
        existing = await db.get_meeting_type(payload["id"], admin_username=admin)
        if not existing:
            raise NotFoundError("Meeting type not found.")

    saved = await db.upsert_meeting_type(_meeting_type_from_payload(admin, payload, existing))

    if schedule_settings and schedule_settings.get("primary_timezone"):
        primary = str(schedule_settings["primary_timezone"])
        get_zone(primary)
        travel_timezone = schedule_settings.get("travel_timezone") or None
        if travel_timezone:
            get_zone(travel_timezone)
        settings = await db.upsert_schedule_settings(
            ScheduleSettings(
                admin_username=admin,
                primary_timezone=primary,
                travel_mode_enabled=bool(schedule_settings.get("travel_mode_enabled")),
                travel_timezone=travel_timezone,
                travel_start_date=_optional_date(schedule_settings.get("travel_start_date")),
                travel_end_date=_optional_date(schedule_settings.get("travel_end_date")),
                global_unavailable=bool(schedule_settings.get("global_unavailable")),
                updated_at=datetime.now(tz=timezone.utc),
            )
        )
        await db.update_meeting_types_timezone(admin, settings.primary_timezone)
        LOG.info("schedule settings saved", extra={"admin_username": admin, "primary_timezone": primary})

    if availability is not None:
        rows = clean_weekly_rows(_weekly_rows(WeeklyAvailability, availability), saved.id)
        await db.replace_availability(saved.id, rows)
    if weekly_blackouts is not None:
        rows = clean_weekly_rows(_weekly_rows(WeeklyBlackout, weekly_blackouts), saved.id)
        await db.replace_weekly_blackouts(saved.id, rows)

    return {"meeting_type": saved.to_row()}


async def delete_meeting_type(
    db: SupabaseClient, admin_username: Optional[str], meeting_type_id: Optional[str]
) -> Dict[str, Any]:
    admin = _require_admin(admin_username)
    if not meeting_type_id:
        raise ValidationError("meeting_type_id is required.")
    await require_meeting_type(db, meeting_type_id, admin_username=admin)
    await db.delete_meeting_type(meeting_type_id, admin)
    return {"ok": True}


async def add_blackout(
    db: SupabaseClient,
    admin_username: Optional[str],
    meeting_type_id: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    all_day: bool = False,
    time_zone: Optional[str] = None,
    note: str = "",
) -> Dict[str, Any]:
    admin = _require_admin(admin_username)
    if not meeting_type_id or not start_date or not end_date:
        raise ValidationError("meeting_type_id, start_date, and end_date are required.")
    await require_meeting_type(db, meeting_type_id, admin_username=admin)

    time_zone = time_zone or "UTC"
    start_minutes = 0 if all_day else _clock_minutes(start_time, 0)
    end_minutes = MINUTES_PER_DAY if all_day else _clock_minutes(end_time, MINUTES_PER_DAY)
    starts_at = civil_date_to_utc(start_date, start_minutes, time_zone)
    ends_at = civil_date_to_utc(end_date, end_minutes, time_zone)
    if ends_at <= starts_at:
        raise ValidationError("Blackout end must be after start.")

    blackout_id = await db.insert_blackout(
        Blackout(
            meeting_type_id=meeting_type_id,
            starts_at_utc=starts_at,
            ends_at_utc=ends_at,
            all_day=all_day,
            note=note or "",
        )
    )
    LOG.info("blackout added", extra={"blackout_id": blackout_id, "meeting_type_id": meeting_type_id})
    return {"id": blackout_id}


async def remove_blackout(
    db: SupabaseClient, admin_username: Optional[str], blackout_id: Optional[str]
) -> Dict[str, Any]:
    _require_admin(admin_username)
    if not blackout_id:
        raise ValidationError("blackout_id is required.")
    await db.delete_blackout(blackout_id)
    return {"ok": True}

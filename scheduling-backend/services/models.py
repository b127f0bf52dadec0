from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from dateutil import parser

from .timezones import format_utc_instant, parse_civil_date

AvailabilityMode = Literal["all", "busy", "daily_limit"]
AVAILABILITY_MODES = ("all", "busy", "daily_limit")

BOOKING_SCHEDULED = "scheduled"
BOOKING_RESCHEDULED = "rescheduled"
BOOKING_CANCELED = "canceled"
CANCELED_STATUSES = frozenset({BOOKING_CANCELED, "cancelled"})

DEFAULT_HEADER_SUBTEXT = "Set up a one-on-one Zoom call"

Row = Dict[str, Any]


def parse_instant(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        dt = parser.isoparse(str(value))
    if not dt.tzinfo:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _optional_instant(value: Any) -> Optional[datetime]:
    return parse_instant(value) if value else None


def _optional_date(value: Any) -> Optional[date]:
    return parse_civil_date(value) if value else None


def _int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _iso(value: Optional[datetime]) -> Optional[str]:
    return format_utc_instant(value) if value else None


@dataclass
class MeetingType:
    id: str
    slug: str
    name: str
    admin_username: str
    location: str = "Zoom"
    duration_minutes: int = 30
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0
    min_notice_minutes: int = 0
    max_horizon_days: int = 30
    timezone_default: str = "UTC"
    availability_mode: AvailabilityMode = "all"
    busy_buffer_percent: int = 40
    busy_pattern_version: int = 1
    daily_limit: int = 0
    show_header: bool = False
    header_subtext: str = ""
    no_overnight_slots: bool = True
    allow_public_reschedule: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Row) -> "MeetingType":
        mode = row.get("availability_mode") or "all"
        no_overnight = row.get("no_overnight_slots")
        return cls(
            id=str(row.get("id") or ""),
            slug=str(row.get("slug") or ""),
            name=str(row.get("name") or ""),
            admin_username=str(row.get("admin_username") or ""),
            location=str(row.get("location") or ""),
            duration_minutes=_int(row.get("duration_minutes"), 30),
            buffer_before_minutes=_int(row.get("buffer_before_minutes"), 0),
            buffer_after_minutes=_int(row.get("buffer_after_minutes"), 0),
            min_notice_minutes=_int(row.get("min_notice_minutes"), 0),
            max_horizon_days=_int(row.get("max_horizon_days"), 30),
            timezone_default=str(row.get("timezone_default") or "UTC"),
            availability_mode=mode if mode in AVAILABILITY_MODES else "all",
            busy_buffer_percent=_int(row.get("busy_buffer_percent"), 40),
            busy_pattern_version=_int(row.get("busy_pattern_version"), 1),
            daily_limit=_int(row.get("daily_limit"), 0),
            show_header=bool(row.get("show_header")),
            header_subtext=str(row.get("header_subtext") or ""),
            no_overnight_slots=True if no_overnight is None else bool(no_overnight),
            allow_public_reschedule=bool(row.get("allow_public_reschedule")),
            created_at=_optional_instant(row.get("created_at")),
            updated_at=_optional_instant(row.get("updated_at")),
        )

    def to_row(self) -> Row:
        row = asdict(self)
        row["created_at"] = _iso(self.created_at)
        row["updated_at"] = _iso(self.updated_at)
        return row

    def summary(self) -> Row:
        return {
            "id": self.id,
            "name": self.name,
            "duration_minutes": self.duration_minutes,
            "timezone_default": self.timezone_default,
            "location": self.location,
        }


@dataclass
class ScheduleSettings:
    admin_username: str
    primary_timezone: str = "UTC"
    travel_mode_enabled: bool = False
    travel_timezone: Optional[str] = None
    travel_start_date: Optional[date] = None
    travel_end_date: Optional[date] = None
    global_unavailable: bool = False
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Row) -> "ScheduleSettings":
        return cls(
            admin_username=str(row.get("admin_username") or ""),
            primary_timezone=str(row.get("primary_timezone") or "UTC"),
            travel_mode_enabled=bool(row.get("travel_mode_enabled")),
            travel_timezone=row.get("travel_timezone") or None,
            travel_start_date=_optional_date(row.get("travel_start_date")),
            travel_end_date=_optional_date(row.get("travel_end_date")),
            global_unavailable=bool(row.get("global_unavailable")),
            updated_at=_optional_instant(row.get("updated_at")),
        )

    def to_row(self) -> Row:
        return {
            "admin_username": self.admin_username,
            "primary_timezone": self.primary_timezone,
            "travel_mode_enabled": self.travel_mode_enabled,
            "travel_timezone": self.travel_timezone,
            "travel_start_date": self.travel_start_date.isoformat() if self.travel_start_date else None,
            "travel_end_date": self.travel_end_date.isoformat() if self.travel_end_date else None,
            "global_unavailable": self.global_unavailable,
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class WeeklyWindow:
    """A recurring (day of week, minute range) window; 0 is Sunday."""

    day_of_week: int
    start_time_minutes: int
    end_time_minutes: int
    meeting_type_id: str = ""
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Row):
        return cls(
            id=row.get("id") or None,
            meeting_type_id=str(row.get("meeting_type_id") or ""),
            day_of_week=_int(row.get("day_of_week"), 0),
            start_time_minutes=_int(row.get("start_time_minutes"), 0),
            end_time_minutes=_int(row.get("end_time_minutes"), 0),
            created_at=_optional_instant(row.get("created_at")),
            updated_at=_optional_instant(row.get("updated_at")),
        )

    def to_row(self) -> Row:
        return {
            "id": self.id,
            "meeting_type_id": self.meeting_type_id,
            "day_of_week": self.day_of_week,
            "start_time_minutes": self.start_time_minutes,
            "end_time_minutes": self.end_time_minutes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class WeeklyAvailability(WeeklyWindow):
    pass


class WeeklyBlackout(WeeklyWindow):
    pass


@dataclass
class Blackout:
    meeting_type_id: str
    starts_at_utc: datetime
    ends_at_utc: datetime
    all_day: bool = False
    note: str = ""
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Row) -> "Blackout":
        return cls(
            id=row.get("id") or None,
            meeting_type_id=str(row.get("meeting_type_id") or ""),
            starts_at_utc=parse_instant(row["starts_at_utc"]),
            ends_at_utc=parse_instant(row["ends_at_utc"]),
            all_day=bool(row.get("all_day")),
            note=str(row.get("note") or ""),
            created_at=_optional_instant(row.get("created_at")),
            updated_at=_optional_instant(row.get("updated_at")),
        )

    def to_row(self) -> Row:
        return {
            "id": self.id,
            "meeting_type_id": self.meeting_type_id,
            "starts_at_utc": _iso(self.starts_at_utc),
            "ends_at_utc": _iso(self.ends_at_utc),
            "all_day": self.all_day,
            "note": self.note,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class Booking:
    meeting_type_id: str
    starts_at_utc: datetime
    ends_at_utc: datetime
    name: str = ""
    email: str = ""
    notes: str = ""
    status: str = BOOKING_SCHEDULED
    id: Optional[str] = None
    public_token: Optional[str] = None
    booking_timezone: Optional[str] = None
    zoom_join_url: Optional[str] = None
    zoom_start_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status not in CANCELED_STATUSES

    @classmethod
    def from_row(cls, row: Row) -> "Booking":
        return cls(
            id=row.get("id") or None,
            meeting_type_id=str(row.get("meeting_type_id") or ""),
            starts_at_utc=parse_instant(row["starts_at_utc"]),
            ends_at_utc=parse_instant(row["ends_at_utc"]),
            name=str(row.get("name") or ""),
            email=str(row.get("email") or ""),
            notes=str(row.get("notes") or ""),
            status=str(row.get("status") or ""),
            public_token=row.get("public_token") or None,
            booking_timezone=row.get("booking_timezone") or None,
            zoom_join_url=row.get("zoom_join_url") or None,
            zoom_start_url=row.get("zoom_start_url") or None,
            created_at=_optional_instant(row.get("created_at")),
        )

    def to_row(self) -> Row:
        row = asdict(self)
        row["starts_at_utc"] = _iso(self.starts_at_utc)
        row["ends_at_utc"] = _iso(self.ends_at_utc)
        row["created_at"] = _iso(self.created_at)
        return row


@dataclass
class Slot:
    starts_at_utc: datetime
    ends_at_utc: datetime
    label: str
    meeting_start_local: str
    is_busy: bool = False

    @property
    def key(self) -> str:
        return format_utc_instant(self.starts_at_utc)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "starts_at_utc": self.key,
            "ends_at_utc": format_utc_instant(self.ends_at_utc),
            "label": self.label,
            "meeting_start_local": self.meeting_start_local,
        }
        if self.is_busy:
            payload["is_busy"] = True
        return payload


@dataclass
class ScheduleInputs:
    """Everything the slot generator reads for one meeting type."""

    meeting_type: MeetingType
    availability: List[WeeklyAvailability] = field(default_factory=list)
    weekly_blackouts: List[WeeklyBlackout] = field(default_factory=list)
    blackouts: List[Blackout] = field(default_factory=list)
    bookings: List[Booking] = field(default_factory=list)
    schedule_settings: Optional[ScheduleSettings] = None

    def without_booking(self, booking_id: Optional[str]) -> "ScheduleInputs":
        return ScheduleInputs(
            meeting_type=self.meeting_type,
            availability=self.availability,
            weekly_blackouts=self.weekly_blackouts,
            blackouts=self.blackouts,
            bookings=[b for b in self.bookings if b.id != booking_id],
            schedule_settings=self.schedule_settings,
        )

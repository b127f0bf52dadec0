from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

import pytest

from services.meeting_types import default_meeting_type, slugify, unique_slug
from services.models import (
    BOOKING_CANCELED,
    Blackout,
    Booking,
    MeetingType,
    ScheduleInputs,
    ScheduleSettings,
    WeeklyAvailability,
    WeeklyBlackout,
)
from services.slot_generator import SlotGenerator
from services.zoom_client import ZoomClient

# Saturday 2025-03-01, midnight UTC; 2025-03-03 is the following Monday
NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)
MONDAY = "2025-03-03"
LA = "America/Los_Angeles"


def make_meeting_type(**overrides: Any) -> MeetingType:
    values: Dict[str, Any] = dict(
        id="mt-1",
        slug="intro-call",
        name="Intro Call",
        admin_username="neil",
        duration_minutes=30,
        buffer_before_minutes=5,
        buffer_after_minutes=5,
        min_notice_minutes=0,
        max_horizon_days=30,
        timezone_default=LA,
        availability_mode="all",
        no_overnight_slots=False,
    )
    values.update(overrides)
    return MeetingType(**values)


def monday_morning() -> List[WeeklyAvailability]:
    return [WeeklyAvailability(day_of_week=1, start_time_minutes=540, end_time_minutes=720)]


class FakeStore:
    """In-memory stand-in for the Supabase storage client."""

    def __init__(self) -> None:
        self.meeting_types: Dict[str, MeetingType] = {}
        self.availability: Dict[str, List[WeeklyAvailability]] = {}
        self.weekly_blackouts: Dict[str, List[WeeklyBlackout]] = {}
        self.blackouts: Dict[str, Blackout] = {}
        self.bookings: Dict[str, Booking] = {}
        self.settings: Dict[str, ScheduleSettings] = {}
        self.timezone_updates: List[tuple] = []

    async def health(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    async def get_meeting_type(
        self,
        meeting_type_id: Optional[str] = None,
        slug: Optional[str] = None,
        admin_username: Optional[str] = None,
    ) -> Optional[MeetingType]:
        for item in self.meeting_types.values():
            if admin_username and item.admin_username != admin_username:
                continue
            if meeting_type_id and item.id == meeting_type_id:
                return item
        for item in self.meeting_types.values():
            if admin_username and item.admin_username != admin_username:
                continue
            if slug and item.slug == slug:
                return item
        return None

    async def list_meeting_types(self, admin_username: str) -> List[MeetingType]:
        return [item for item in self.meeting_types.values() if item.admin_username == admin_username]

    async def ensure_meeting_type(self, admin_username: str) -> MeetingType:
        existing = await self.list_meeting_types(admin_username)
        if existing:
            return existing[0]
        return await self.upsert_meeting_type(default_meeting_type(admin_username))

    async def upsert_meeting_type(self, meeting_type: MeetingType) -> MeetingType:
        owners = {item.slug: item.id for item in self.meeting_types.values()}
        slug = unique_slug(slugify(meeting_type.slug or meeting_type.name), owners.get, meeting_type.id)
        saved = replace(meeting_type, slug=slug)
        self.meeting_types[saved.id] = saved
        return saved

    async def delete_meeting_type(self, meeting_type_id: str, admin_username: str) -> None:
        item = self.meeting_types.get(meeting_type_id)
        if item and item.admin_username == admin_username:
            del self.meeting_types[meeting_type_id]

    async def update_meeting_types_timezone(self, admin_username: str, time_zone: str) -> None:
        self.timezone_updates.append((admin_username, time_zone))
        for key, item in list(self.meeting_types.items()):
            if item.admin_username == admin_username:
                self.meeting_types[key] = replace(item, timezone_default=time_zone)

    async def list_availability(self, meeting_type_id: str) -> List[WeeklyAvailability]:
        return list(self.availability.get(meeting_type_id, []))

    async def list_weekly_blackouts(self, meeting_type_id: str) -> List[WeeklyBlackout]:
        return list(self.weekly_blackouts.get(meeting_type_id, []))

    async def replace_availability(self, meeting_type_id: str, rows: List[WeeklyAvailability]) -> None:
        self.availability[meeting_type_id] = list(rows)

    async def replace_weekly_blackouts(self, meeting_type_id: str, rows: List[WeeklyBlackout]) -> None:
        self.weekly_blackouts[meeting_type_id] = list(rows)

    async def list_blackouts(self, meeting_type_id: str) -> List[Blackout]:
        return [item for item in self.blackouts.values() if item.meeting_type_id == meeting_type_id]

    async def insert_blackout(self, blackout: Blackout) -> str:
        record = replace(blackout, id=blackout.id or str(uuid4()))
        self.blackouts[str(record.id)] = record
        return str(record.id)

    async def delete_blackout(self, blackout_id: str) -> None:
        self.blackouts.pop(blackout_id, None)

    async def get_schedule_settings(self, admin_username: str) -> Optional[ScheduleSettings]:
        return self.settings.get(admin_username)

    async def upsert_schedule_settings(self, settings: ScheduleSettings) -> ScheduleSettings:
        self.settings[settings.admin_username] = settings
        return settings

    async def list_upcoming_bookings(self, meeting_type_id: str, from_utc: datetime) -> List[Booking]:
        return sorted(
            (
                item
                for item in self.bookings.values()
                if item.meeting_type_id == meeting_type_id
                and item.status != BOOKING_CANCELED
                and item.ends_at_utc >= from_utc
            ),
            key=lambda item: item.starts_at_utc,
        )

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self.bookings.get(booking_id)

    async def get_booking_by_token(self, token: str) -> Optional[Booking]:
        for item in self.bookings.values():
            if item.public_token == token:
                return item
        return None

    async def create_booking(self, booking: Booking) -> Booking:
        record = replace(booking, id=booking.id or str(uuid4()), created_at=booking.created_at or NOW)
        self.bookings[str(record.id)] = record
        return record

    async def update_booking(self, booking_id: str, **patch: Any) -> Optional[Booking]:
        item = self.bookings.get(booking_id)
        if item is None:
            return None
        updated = replace(item, **patch)
        self.bookings[booking_id] = updated
        return updated

    async def load_schedule_inputs(self, meeting_type: MeetingType, now: Optional[datetime] = None) -> ScheduleInputs:
        return ScheduleInputs(
            meeting_type=meeting_type,
            availability=await self.list_availability(meeting_type.id),
            weekly_blackouts=await self.list_weekly_blackouts(meeting_type.id),
            blackouts=await self.list_blackouts(meeting_type.id),
            bookings=await self.list_upcoming_bookings(meeting_type.id, now or NOW),
            schedule_settings=await self.get_schedule_settings(meeting_type.admin_username),
        )


@pytest.fixture
def generator() -> SlotGenerator:
    return SlotGenerator(clock=lambda: NOW)


@pytest.fixture
def meeting_type() -> MeetingType:
    return make_meeting_type()


@pytest.fixture
def store(meeting_type: MeetingType) -> FakeStore:
    fake = FakeStore()
    fake.meeting_types[meeting_type.id] = meeting_type
    fake.availability[meeting_type.id] = monday_morning()
    return fake


@pytest.fixture
def zoom() -> ZoomClient:
    return ZoomClient()

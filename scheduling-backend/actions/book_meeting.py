from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from services.errors import SlotUnavailableError, ValidationError
from services.models import BOOKING_SCHEDULED, Booking
from services.slot_generator import SlotGenerator, find_bookable_slot
from services.supabase_client import SupabaseClient
from services.zoom_client import ZoomClient

from .lookups import parse_start, require_meeting_type

LOG = logging.getLogger(__name__)


async def execute(
    db: SupabaseClient,
    slots: SlotGenerator,
    zoom: ZoomClient,
    date: str,
    starts_at_utc: str,
    name: str,
    email: str,
    meeting_type_id: Optional[str] = None,
    slug: Optional[str] = None,
    notes: Optional[str] = None,
    timezone: Optional[str] = None,
) -> Dict[str, Any]:
    if not date or not starts_at_utc or not name or not email:
        raise ValidationError("date, starts_at_utc, name, and email are required.")
    meeting_type = await require_meeting_type(db, meeting_type_id, slug)
    viewer_time_zone = timezone or meeting_type.timezone_default
    requested = parse_start(starts_at_utc)

    now = slots.now()
    inputs = await db.load_schedule_inputs(meeting_type, now)
    selected = find_bookable_slot(
        slots.compute_for_inputs(inputs, date, viewer_time_zone, now=now),
        requested,
    )
    if not selected:
        raise SlotUnavailableError("That slot is no longer available. Please select a new time.")

    meeting = await zoom.create_meeting(
        meeting_type.name, selected.starts_at_utc, meeting_type.duration_minutes
    )
    booking = await db.create_booking(
        Booking(
            meeting_type_id=meeting_type.id,
            starts_at_utc=selected.starts_at_utc,
            ends_at_utc=selected.ends_at_utc,
            name=name,
            email=email,
            notes=notes or "",
            status=BOOKING_SCHEDULED,
            public_token=uuid4().hex if meeting_type.allow_public_reschedule else None,
            booking_timezone=viewer_time_zone,
            zoom_join_url=meeting.join_url,
            zoom_start_url=meeting.start_url,
        )
    )
    LOG.info(
        "booking created",
        extra={"booking_id": booking.id, "meeting_type_id": meeting_type.id, "start": selected.key},
    )
    return booking.to_row()

"""Cancel and reschedule flows, for admins and for public booking links."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from services.errors import NotFoundError, PermissionDeniedError, SlotUnavailableError, ValidationError
from services.models import BOOKING_CANCELED, BOOKING_RESCHEDULED, Booking, MeetingType
from services.slot_generator import SlotGenerator, find_bookable_slot
from services.supabase_client import SupabaseClient
from services.zoom_client import ZoomClient

from .lookups import parse_start, require_meeting_type

LOG = logging.getLogger(__name__)


async def cancel(db: SupabaseClient, booking_id: str, meeting_type_id: str) -> Dict[str, Any]:
    await require_meeting_type(db, meeting_type_id)
    await db.update_booking(booking_id, status=BOOKING_CANCELED)
    LOG.info("booking canceled", extra={"booking_id": booking_id})
    return {"ok": True}


async def reschedule(
    db: SupabaseClient,
    slots: SlotGenerator,
    zoom: ZoomClient,
    booking_id: str,
    meeting_type_id: str,
    date: Optional[str],
    starts_at_utc: Optional[str],
    timezone: Optional[str] = None,
) -> Dict[str, Any]:
    meeting_type = await require_meeting_type(db, meeting_type_id)
    await _move(db, slots, zoom, meeting_type, booking_id, date, starts_at_utc, timezone)
    return {"ok": True}


async def get_by_token(db: SupabaseClient, token: str) -> Dict[str, Any]:
    booking = await _booking_for_token(db, token)
    meeting_type = await db.get_meeting_type(booking.meeting_type_id)
    payload = booking.to_row()
    payload["meeting_name"] = meeting_type.name if meeting_type else ""
    payload["meeting_location"] = meeting_type.location if meeting_type else ""
    return payload


async def cancel_by_token(db: SupabaseClient, token: str) -> Dict[str, Any]:
    booking = await _booking_for_token(db, token)
    await _public_meeting_type(db, booking)
    await db.update_booking(str(booking.id), status=BOOKING_CANCELED)
    LOG.info("booking canceled via public link", extra={"booking_id": booking.id})
    return {"ok": True}


async def reschedule_by_token(
    db: SupabaseClient,
    slots: SlotGenerator,
    zoom: ZoomClient,
    token: str,
    date: Optional[str],
    starts_at_utc: Optional[str],
    timezone: Optional[str] = None,
) -> Dict[str, Any]:
    booking = await _booking_for_token(db, token)
    meeting_type = await _public_meeting_type(db, booking)
    await _move(
        db,
        slots,
        zoom,
        meeting_type,
        str(booking.id),
        date,
        starts_at_utc,
        timezone,
        record_timezone=True,
    )
    return {"ok": True}


async def _booking_for_token(db: SupabaseClient, token: str) -> Booking:
    if not token:
        raise ValidationError("token is required.")
    booking = await db.get_booking_by_token(token)
    if not booking:
        raise NotFoundError("Booking not found.")
    return booking


async def _public_meeting_type(db: SupabaseClient, booking: Booking) -> MeetingType:
    meeting_type = await db.get_meeting_type(booking.meeting_type_id)
    if not meeting_type or not meeting_type.allow_public_reschedule:
        raise PermissionDeniedError("Public reschedule is not allowed.")
    return meeting_type


async def _move(
    db: SupabaseClient,
    slots: SlotGenerator,
    zoom: ZoomClient,
    meeting_type: MeetingType,
    booking_id: str,
    date: Optional[str],
    starts_at_utc: Optional[str],
    timezone: Optional[str],
    record_timezone: bool = False,
) -> None:
    if not date or not starts_at_utc:
        raise ValidationError("date and starts_at_utc are required for reschedule.")
    viewer_time_zone = timezone or meeting_type.timezone_default
    requested = parse_start(starts_at_utc)

    now = slots.now()
    inputs = await db.load_schedule_inputs(meeting_type, now)
    # the booking being moved must not block its own new time
    computed = slots.compute_for_inputs(
        inputs.without_booking(booking_id), date, viewer_time_zone, now=now
    )
    selected = find_bookable_slot(computed, requested)
    if not selected:
        raise SlotUnavailableError("That slot is no longer available.")

    meeting = await zoom.create_meeting(
        meeting_type.name, selected.starts_at_utc, meeting_type.duration_minutes
    )
    patch: Dict[str, Any] = {
        "starts_at_utc": selected.starts_at_utc,
        "ends_at_utc": selected.ends_at_utc,
        "status": BOOKING_RESCHEDULED,
        "zoom_join_url": meeting.join_url,
        "zoom_start_url": meeting.start_url,
    }
    if record_timezone:
        patch["booking_timezone"] = viewer_time_zone
    await db.update_booking(booking_id, **patch)
    LOG.info("booking rescheduled", extra={"booking_id": booking_id, "start": selected.key})

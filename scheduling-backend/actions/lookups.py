from __future__ import annotations

from datetime import datetime
from typing import Optional

from services.errors import NotFoundError, ValidationError
from services.models import MeetingType, parse_instant
from services.supabase_client import SupabaseClient


async def require_meeting_type(
    db: SupabaseClient,
    meeting_type_id: Optional[str] = None,
    slug: Optional[str] = None,
    admin_username: Optional[str] = None,
) -> MeetingType:
    if not meeting_type_id and not slug:
        raise ValidationError("meeting_type_id or slug is required.")
    meeting_type = await db.get_meeting_type(meeting_type_id, slug, admin_username)
    if not meeting_type:
        raise NotFoundError("Meeting type not found.")
    return meeting_type


def parse_start(value: str) -> datetime:
    try:
        return parse_instant(value)
    except (ValueError, OverflowError) as exc:
        raise ValidationError(f"Invalid start time '{value}'") from exc

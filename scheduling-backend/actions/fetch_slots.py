from __future__ import annotations

from typing import Any, Dict, Optional

from services.errors import ValidationError
from services.slot_generator import SlotGenerator
from services.supabase_client import SupabaseClient
from services.timezones import parse_civil_date

from .lookups import require_meeting_type


async def execute(
    db: SupabaseClient,
    slots: SlotGenerator,
    meeting_type_id: Optional[str] = None,
    slug: Optional[str] = None,
    date: Optional[str] = None,
    start_date: Optional[str] = None,
    days: Optional[int] = None,
    timezone: str = "UTC",
) -> Dict[str, Any]:
    if not date and not start_date:
        raise ValidationError("date or start_date is required.")
    meeting_type = await require_meeting_type(db, meeting_type_id, slug)
    now = slots.now()
    inputs = await db.load_schedule_inputs(meeting_type, now)
    if start_date:
        computed = slots.compute_days(inputs, start_date, 7 if days is None else days, timezone, now=now)
    else:
        day = parse_civil_date(date)
        computed = [(day, slots.compute_for_inputs(inputs, day, timezone, now=now))]
    return {
        "meeting_type": meeting_type.summary(),
        "days": [
            {"date": day.isoformat(), "slots": [slot.to_dict() for slot in day_slots]}
            for day, day_slots in computed
        ],
    }

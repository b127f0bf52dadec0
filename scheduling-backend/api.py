from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional

import httpx
from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

from actions import admin_schedule, book_meeting, fetch_slots, manage_booking
from services import SlotGenerator, SupabaseClient, ZoomClient
from services.errors import SchedulingError, ValidationError
from settings import get_settings


settings = get_settings()

logger = logging.getLogger("scheduling.api")
if not logger.handlers:
    logging.basicConfig(level=settings.log_level)

app = FastAPI(
    title="Scheduling Backend",
    version="1.0.0",
    default_response_class=ORJSONResponse,
)

origins = settings.cors_origins or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_store() -> SupabaseClient:
    return SupabaseClient(settings.supabase_url, settings.supabase_key)


@lru_cache(maxsize=1)
def get_zoom() -> ZoomClient:
    return ZoomClient(
        api_token=settings.zoom_api_token,
        api_base=settings.zoom_api_base,
        host_email=settings.zoom_host_email,
        placeholder_host=settings.zoom_placeholder_host,
    )


@lru_cache(maxsize=1)
def get_slot_generator() -> SlotGenerator:
    return SlotGenerator(step_minutes=settings.slot_step_minutes)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> ORJSONResponse:
    logger.info(
        "request rejected",
        extra={"path": request.url.path, "status": exc.status_code, "error": exc.message},
    )
    return ORJSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(httpx.HTTPError)
async def upstream_error_handler(request: Request, exc: httpx.HTTPError) -> ORJSONResponse:
    logger.error("upstream request failed: %s", exc, extra={"path": request.url.path})
    return ORJSONResponse({"error": "Upstream service unavailable."}, status_code=502)


class WeeklyRowPayload(BaseModel):
    id: Optional[str] = None
    day_of_week: int = Field(0, ge=0, le=6)
    start_time_minutes: int = 0
    end_time_minutes: int = 0


class MeetingTypePayload(BaseModel):
    id: Optional[str] = None
    slug: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    buffer_before_minutes: Optional[int] = Field(default=None, ge=0)
    buffer_after_minutes: Optional[int] = Field(default=None, ge=0)
    min_notice_minutes: Optional[int] = Field(default=None, ge=0)
    max_horizon_days: Optional[int] = Field(default=None, ge=0)
    timezone_default: Optional[str] = None
    availability_mode: Optional[str] = None
    busy_buffer_percent: Optional[int] = None
    busy_pattern_version: Optional[int] = None
    daily_limit: Optional[int] = Field(default=None, ge=0)
    show_header: Optional[bool] = None
    header_subtext: Optional[str] = None
    no_overnight_slots: Optional[bool] = None
    allow_public_reschedule: Optional[bool] = None


class ScheduleSettingsPayload(BaseModel):
    primary_timezone: Optional[str] = None
    travel_mode_enabled: bool = False
    travel_timezone: Optional[str] = None
    travel_start_date: Optional[str] = None
    travel_end_date: Optional[str] = None
    global_unavailable: bool = False


class BlackoutPayload(BaseModel):
    meeting_type_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    start_time: Optional[str] = Field(default=None, description="HH:MM in the blackout timezone")
    end_time: Optional[str] = None
    all_day: bool = False
    timezone: Optional[str] = None
    note: str = ""


class AvailabilityRequest(BaseModel):
    action: Literal["save", "createMeetingType", "deleteMeetingType", "addBlackout", "deleteBlackout"] = "save"
    meeting_type: Optional[MeetingTypePayload] = None
    availability: Optional[List[WeeklyRowPayload]] = None
    weekly_blackouts: Optional[List[WeeklyRowPayload]] = None
    new_meeting_type_name: Optional[str] = None
    meeting_type_id: Optional[str] = None
    schedule_settings: Optional[ScheduleSettingsPayload] = None
    blackout: Optional[BlackoutPayload] = None
    blackout_id: Optional[str] = None


class BookRequest(BaseModel):
    meeting_type_id: Optional[str] = None
    slug: Optional[str] = None
    date: Optional[str] = None
    timezone: Optional[str] = None
    starts_at_utc: Optional[str] = None
    name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=254)
    notes: Optional[str] = Field(default=None, max_length=2000)


class ManageRequest(BaseModel):
    action: Optional[Literal["cancel", "reschedule"]] = None
    token: Optional[str] = None
    date: Optional[str] = None
    timezone: Optional[str] = None
    starts_at_utc: Optional[str] = None


class AdminBookingRequest(BaseModel):
    action: Optional[Literal["cancel", "reschedule"]] = None
    booking_id: Optional[str] = None
    meeting_type_id: Optional[str] = None
    date: Optional[str] = None
    timezone: Optional[str] = None
    starts_at_utc: Optional[str] = None


@app.get("/api/health")
async def health(db: SupabaseClient = Depends(get_store)) -> Dict[str, Any]:
    logger.debug("/api/health invoked")
    supabase_ok = await db.health()
    status = "ok" if supabase_ok else "degraded"
    return {"status": status, "supabase": supabase_ok}


@app.get("/api/schedule/slots")
async def list_slots(
    meeting_type_id: Optional[str] = None,
    slug: Optional[str] = None,
    date: Optional[str] = None,
    start_date: Optional[str] = None,
    days: Optional[int] = None,
    timezone: str = "UTC",
    db: SupabaseClient = Depends(get_store),
    slots: SlotGenerator = Depends(get_slot_generator),
) -> Dict[str, Any]:
    logger.info(
        "fetching slots",
        extra={"meeting_type_id": meeting_type_id, "slug": slug, "date": date, "start_date": start_date},
    )
    return await fetch_slots.execute(
        db,
        slots,
        meeting_type_id=meeting_type_id,
        slug=slug,
        date=date,
        start_date=start_date,
        days=days,
        timezone=timezone,
    )


@app.post("/api/schedule/book")
async def book(
    payload: BookRequest,
    db: SupabaseClient = Depends(get_store),
    slots: SlotGenerator = Depends(get_slot_generator),
    zoom: ZoomClient = Depends(get_zoom),
) -> Dict[str, Any]:
    logger.info(
        "booking requested",
        extra={"meeting_type_id": payload.meeting_type_id, "slug": payload.slug, "start": payload.starts_at_utc},
    )
    booking = await book_meeting.execute(
        db,
        slots,
        zoom,
        date=payload.date or "",
        starts_at_utc=payload.starts_at_utc or "",
        name=payload.name or "",
        email=payload.email or "",
        meeting_type_id=payload.meeting_type_id,
        slug=payload.slug,
        notes=payload.notes,
        timezone=payload.timezone,
    )
    return {"booking": booking}


@app.get("/api/schedule/manage")
async def get_managed_booking(token: Optional[str] = None, db: SupabaseClient = Depends(get_store)) -> Dict[str, Any]:
    return {"booking": await manage_booking.get_by_token(db, token or "")}


@app.post("/api/schedule/manage")
async def manage_by_token(
    payload: ManageRequest,
    db: SupabaseClient = Depends(get_store),
    slots: SlotGenerator = Depends(get_slot_generator),
    zoom: ZoomClient = Depends(get_zoom),
) -> Dict[str, Any]:
    if not payload.action or not payload.token:
        raise ValidationError("action and token are required.")
    if payload.action == "cancel":
        return await manage_booking.cancel_by_token(db, payload.token)
    return await manage_booking.reschedule_by_token(
        db, slots, zoom, payload.token, payload.date, payload.starts_at_utc, payload.timezone
    )


@app.post("/api/schedule/booking")
async def manage_as_admin(
    payload: AdminBookingRequest,
    db: SupabaseClient = Depends(get_store),
    slots: SlotGenerator = Depends(get_slot_generator),
    zoom: ZoomClient = Depends(get_zoom),
) -> Dict[str, Any]:
    if not payload.action or not payload.booking_id or not payload.meeting_type_id:
        raise ValidationError("action, booking_id, and meeting_type_id are required.")
    if payload.action == "cancel":
        return await manage_booking.cancel(db, payload.booking_id, payload.meeting_type_id)
    return await manage_booking.reschedule(
        db,
        slots,
        zoom,
        payload.booking_id,
        payload.meeting_type_id,
        payload.date,
        payload.starts_at_utc,
        payload.timezone,
    )


@app.get("/api/schedule/availability")
async def get_availability(
    meeting_type_id: Optional[str] = None,
    slug: Optional[str] = None,
    public: Optional[str] = None,
    x_admin_username: Optional[str] = Header(default=None),
    db: SupabaseClient = Depends(get_store),
) -> Dict[str, Any]:
    if public == "1":
        return await admin_schedule.public_meeting_type(db, meeting_type_id, slug)
    return await admin_schedule.overview(db, x_admin_username, meeting_type_id, slug)


@app.post("/api/schedule/availability")
async def post_availability(
    payload: AvailabilityRequest,
    x_admin_username: Optional[str] = Header(default=None),
    db: SupabaseClient = Depends(get_store),
) -> Dict[str, Any]:
    logger.info("availability update", extra={"action": payload.action, "admin_username": x_admin_username})
    if payload.action == "createMeetingType":
        return await admin_schedule.create_meeting_type(db, x_admin_username, payload.new_meeting_type_name)
    if payload.action == "deleteBlackout":
        return await admin_schedule.remove_blackout(db, x_admin_username, payload.blackout_id)
    if payload.action == "deleteMeetingType":
        meeting_type_id = (payload.meeting_type.id if payload.meeting_type else None) or payload.meeting_type_id
        return await admin_schedule.delete_meeting_type(db, x_admin_username, meeting_type_id)
    if payload.action == "addBlackout":
        blackout = payload.blackout or BlackoutPayload()
        return await admin_schedule.add_blackout(
            db,
            x_admin_username,
            blackout.meeting_type_id,
            blackout.start_date,
            blackout.end_date,
            start_time=blackout.start_time,
            end_time=blackout.end_time,
            all_day=blackout.all_day,
            time_zone=blackout.timezone,
            note=blackout.note,
        )
    return await admin_schedule.save_meeting_type(
        db,
        x_admin_username,
        payload.meeting_type.model_dump() if payload.meeting_type else None,
        availability=[row.model_dump() for row in payload.availability] if payload.availability is not None else None,
        weekly_blackouts=(
            [row.model_dump() for row in payload.weekly_blackouts] if payload.weekly_blackouts is not None else None
        ),
        schedule_settings=payload.schedule_settings.model_dump() if payload.schedule_settings else None,
    )


@app.on_event("shutdown")
async def shutdown_event() -> None:
    logger.info("API shutdown requested; closing clients")
    if get_store.cache_info().currsize:
        await get_store().close()
    if get_zoom.cache_info().currsize:
        await get_zoom().close()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api:app", host="0.0.0.0", port=8000, reload=True)

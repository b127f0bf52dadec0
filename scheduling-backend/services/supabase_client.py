from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

import httpx

from .meeting_types import default_meeting_type, slugify, unique_slug
from .models import (
    BOOKING_CANCELED,
    Blackout,
    Booking,
    MeetingType,
    ScheduleInputs,
    ScheduleSettings,
    WeeklyAvailability,
    WeeklyBlackout,
    WeeklyWindow,
)
from .timezones import format_utc_instant

LOG = logging.getLogger(__name__)

UPCOMING_BOOKINGS_LIMIT = 200
_UPSERT_PREFER = "resolution=merge-duplicates,return=representation"


class SupabaseClient:
    """Supabase PostgREST storage for meeting types, availability and bookings."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url or os.getenv("SUPABASE_URL")
        self._api_key = api_key or os.getenv("SUPABASE_KEY")
        if not self._base_url or not self._api_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be configured")
        self._rest_url = f"{self._base_url.rstrip('/')}/rest/v1"
        self._client = httpx.AsyncClient(
            base_url=self._rest_url,
            headers={
                "apikey": self._api_key,
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Prefer": "return=representation",
            },
            timeout=20.0,
            transport=transport,
        )
        self._lock = asyncio.Lock()

    async def close(self) -> None:
        await self._client.aclose()

    async def health(self) -> bool:
        try:
            response = await self._client.get("/meeting_types", params={"select": "id", "limit": 1})
            response.raise_for_status()
            return True
        except httpx.HTTPError as exc:
            LOG.error("Supabase health check failed: %s", exc)
            return False

    @staticmethod
    def _iso(dt: datetime) -> str:
        return format_utc_instant(dt)

    @staticmethod
    def _now() -> datetime:
        return datetime.now(tz=timezone.utc)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        LOG.debug("supabase request", extra={"method": method, "path": path, "kwargs": kwargs})
        async with self._lock:
            response = await self._client.request(method, path, **kwargs)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                LOG.warning("Supabase endpoint missing: %s %s", method, path)
                # a missing table reads as "nothing configured", which means closed
                return []
            raise
        LOG.debug(
            "supabase response",
            extra={"method": method, "path": path, "status": response.status_code},
        )
        if response.status_code == 204 or not response.content:
            return []
        return response.json()

    async def _upsert(self, path: str, on_conflict: str, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await self._request(
            "POST",
            path,
            params={"on_conflict": on_conflict},
            json=payload,
            headers={"Prefer": _UPSERT_PREFER},
        )

    # meeting types

    async def get_meeting_type(
        self,
        meeting_type_id: Optional[str] = None,
        slug: Optional[str] = None,
        admin_username: Optional[str] = None,
    ) -> Optional[MeetingType]:
        lookups = []
        if meeting_type_id:
            lookups.append(("id", meeting_type_id))
        if slug:
            lookups.append(("slug", slug))
        for column, value in lookups:
            params: Dict[str, Any] = {"select": "*", column: f"eq.{value}", "limit": 1}
            if admin_username:
                params["admin_username"] = f"eq.{admin_username}"
            data = await self._request("GET", "/meeting_types", params=params)
            if data:
                return MeetingType.from_row(data[0])
        return None

    async def list_meeting_types(self, admin_username: str) -> List[MeetingType]:
        data = await self._request(
            "GET",
            "/meeting_types",
            params={
                "select": "*",
                "admin_username": f"eq.{admin_username}",
                "order": "created_at.asc",
            },
        )
        return [MeetingType.from_row(row) for row in data]

    async def ensure_meeting_type(self, admin_username: str) -> MeetingType:
        existing = await self.list_meeting_types(admin_username)
        if existing:
            return existing[0]
        LOG.info("provisioning default meeting type", extra={"admin_username": admin_username})
        return await self.upsert_meeting_type(default_meeting_type(admin_username))

    async def _slug_owners(self, base: str) -> Dict[str, str]:
        data = await self._request(
            "GET",
            "/meeting_types",
            params={"select": "id,slug", "slug": f"like.{base}*"},
        )
        return {str(row["slug"]): str(row["id"]) for row in data}

    async def upsert_meeting_type(self, meeting_type: MeetingType) -> MeetingType:
        base = slugify(meeting_type.slug or meeting_type.name)
        owners = await self._slug_owners(base)
        slug = unique_slug(base, owners.get, meeting_type.id)
        if slug != meeting_type.slug:
            LOG.info("meeting type slug resolved", extra={"requested": meeting_type.slug, "slug": slug})
        saved = replace(
            meeting_type,
            slug=slug,
            created_at=meeting_type.created_at or self._now(),
            updated_at=meeting_type.updated_at or self._now(),
        )
        data = await self._upsert("/meeting_types", "id", saved.to_row())
        return MeetingType.from_row(data[0]) if data else saved

    async def delete_meeting_type(self, meeting_type_id: str, admin_username: str) -> None:
        await self._request(
            "DELETE",
            "/meeting_types",
            params={"id": f"eq.{meeting_type_id}", "admin_username": f"eq.{admin_username}"},
        )

    async def update_meeting_types_timezone(self, admin_username: str, time_zone: str) -> None:
        await self._request(
            "PATCH",
            "/meeting_types",
            params={"admin_username": f"eq.{admin_username}"},
            json={"timezone_default": time_zone, "updated_at": self._iso(self._now())},
        )

    # weekly availability and blackouts

    async def _list_weekly(self, table: str, meeting_type_id: str) -> List[Dict[str, Any]]:
        return await self._request(
            "GET",
            f"/{table}",
            params={
                "select": "*",
                "meeting_type_id": f"eq.{meeting_type_id}",
                "order": "day_of_week.asc,start_time_minutes.asc",
            },
        )

    async def list_availability(self, meeting_type_id: str) -> List[WeeklyAvailability]:
        rows = await self._list_weekly("weekly_availability", meeting_type_id)
        return [WeeklyAvailability.from_row(row) for row in rows]

    async def list_weekly_blackouts(self, meeting_type_id: str) -> List[WeeklyBlackout]:
        rows = await self._list_weekly("weekly_blackouts", meeting_type_id)
        return [WeeklyBlackout.from_row(row) for row in rows]

    async def _replace_weekly(
        self, function: str, meeting_type_id: str, rows: Sequence[WeeklyWindow]
    ) -> None:
        # the database function deletes and inserts in one transaction
        now = self._now()
        payload = []
        for row in rows:
            item = replace(
                row,
                id=row.id or str(uuid4()),
                meeting_type_id=meeting_type_id,
                created_at=row.created_at or now,
                updated_at=now,
            )
            payload.append(item.to_row())
        await self._request(
            "POST",
            f"/rpc/{function}",
            json={"p_meeting_type_id": meeting_type_id, "p_rows": payload},
        )

    async def replace_availability(
        self, meeting_type_id: str, rows: Sequence[WeeklyAvailability]
    ) -> None:
        await self._replace_weekly("replace_weekly_availability", meeting_type_id, rows)

    async def replace_weekly_blackouts(
        self, meeting_type_id: str, rows: Sequence[WeeklyBlackout]
    ) -> None:
        await self._replace_weekly("replace_weekly_blackouts", meeting_type_id, rows)

    # one-off blackouts

    async def list_blackouts(self, meeting_type_id: str) -> List[Blackout]:
        data = await self._request(
            "GET",
            "/blackouts",
            params={
                "select": "*",
                "meeting_type_id": f"eq.{meeting_type_id}",
                "order": "starts_at_utc.desc",
            },
        )
        return [Blackout.from_row(row) for row in data]

    async def insert_blackout(self, blackout: Blackout) -> str:
        now = self._now()
        record = replace(blackout, id=blackout.id or str(uuid4()), created_at=now, updated_at=now)
        await self._request("POST", "/blackouts", json=record.to_row())
        return str(record.id)

    async def delete_blackout(self, blackout_id: str) -> None:
        await self._request("DELETE", "/blackouts", params={"id": f"eq.{blackout_id}"})

    # schedule settings

    async def get_schedule_settings(self, admin_username: str) -> Optional[ScheduleSettings]:
        data = await self._request(
            "GET",
            "/schedule_settings",
            params={"select": "*", "admin_username": f"eq.{admin_username}", "limit": 1},
        )
        return ScheduleSettings.from_row(data[0]) if data else None

    async def upsert_schedule_settings(self, settings: ScheduleSettings) -> ScheduleSettings:
        saved = replace(settings, updated_at=settings.updated_at or self._now())
        data = await self._upsert("/schedule_settings", "admin_username", saved.to_row())
        return ScheduleSettings.from_row(data[0]) if data else saved

    # bookings

    async def list_upcoming_bookings(self, meeting_type_id: str, from_utc: datetime) -> List[Booking]:
        data = await self._request(
            "GET",
            "/bookings",
            params={
                "select": "*",
                "meeting_type_id": f"eq.{meeting_type_id}",
                "status": f"neq.{BOOKING_CANCELED}",
                "ends_at_utc": f"gte.{self._iso(from_utc)}",
                "order": "starts_at_utc.asc",
                "limit": UPCOMING_BOOKINGS_LIMIT,
            },
        )
        return [Booking.from_row(row) for row in data]

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        data = await self._request(
            "GET",
            "/bookings",
            params={"id": f"eq.{booking_id}", "select": "*", "limit": 1},
        )
        return Booking.from_row(data[0]) if data else None

    async def get_booking_by_token(self, token: str) -> Optional[Booking]:
        data = await self._request(
            "GET",
            "/bookings",
            params={"public_token": f"eq.{token}", "select": "*", "limit": 1},
        )
        return Booking.from_row(data[0]) if data else None

    async def create_booking(self, booking: Booking) -> Booking:
        record = replace(
            booking,
            id=booking.id or str(uuid4()),
            created_at=booking.created_at or self._now(),
        )
        data = await self._request("POST", "/bookings", json=record.to_row())
        return Booking.from_row(data[0]) if data else record

    async def update_booking(self, booking_id: str, **patch: Any) -> Optional[Booking]:
        payload = {
            key: self._iso(value) if isinstance(value, datetime) else value
            for key, value in patch.items()
        }
        data = await self._request(
            "PATCH",
            "/bookings",
            params={"id": f"eq.{booking_id}"},
            json=payload,
        )
        return Booking.from_row(data[0]) if data else None

    async def load_schedule_inputs(
        self, meeting_type: MeetingType, now: Optional[datetime] = None
    ) -> ScheduleInputs:
        return ScheduleInputs(
            meeting_type=meeting_type,
            availability=await self.list_availability(meeting_type.id),
            weekly_blackouts=await self.list_weekly_blackouts(meeting_type.id),
            blackouts=await self.list_blackouts(meeting_type.id),
            bookings=await self.list_upcoming_bookings(meeting_type.id, now or self._now()),
            schedule_settings=await self.get_schedule_settings(meeting_type.admin_username),
        )

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from .timezones import format_utc_instant

LOG = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.zoom.us/v2"
DEFAULT_PLACEHOLDER_HOST = "https://zoom.example.com"


@dataclass
class ZoomMeeting:
    join_url: str
    start_url: str

    def to_dict(self) -> Dict[str, str]:
        return {"join_url": self.join_url, "start_url": self.start_url}


class ZoomClient:
    """Creates Zoom meetings for confirmed bookings.

    Without an API token the client hands out stable placeholder links so
    local and staging deployments can book without a Zoom account.
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        api_base: str = DEFAULT_API_BASE,
        host_email: Optional[str] = None,
        placeholder_host: str = DEFAULT_PLACEHOLDER_HOST,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_token = api_token
        self._host_email = host_email
        self._placeholder_host = placeholder_host.rstrip("/")
        self._client: Optional[httpx.AsyncClient] = None
        if api_token:
            self._client = httpx.AsyncClient(
                base_url=api_base.rstrip("/"),
                headers={
                    "Authorization": f"Bearer {api_token}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                timeout=20.0,
                transport=transport,
            )

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def create_meeting(
        self,
        topic: str,
        start_utc: datetime,
        duration_minutes: int,
        host_email: Optional[str] = None,
    ) -> ZoomMeeting:
        starts_at = format_utc_instant(start_utc)
        if self._client is None:
            LOG.warning("Zoom API token missing; issuing placeholder meeting links")
            return self._placeholder(topic, starts_at)

        host = host_email or self._host_email or "me"
        payload: Dict[str, Any] = {
            "topic": topic,
            "type": 2,
            "start_time": starts_at.replace(".000Z", "Z"),
            "timezone": "UTC",
            "duration": duration_minutes,
        }
        LOG.info("creating zoom meeting", extra={"topic": topic, "start": starts_at, "host": host})
        response = await self._client.post(f"/users/{host}/meetings", json=payload)
        response.raise_for_status()
        data = response.json()
        return ZoomMeeting(join_url=data["join_url"], start_url=data["start_url"])

    def _placeholder(self, topic: str, starts_at: str) -> ZoomMeeting:
        seed = base64.b64encode(f"{topic}-{starts_at}".encode("utf-8")).decode("ascii")
        return ZoomMeeting(
            join_url=f"{self._placeholder_host}/join/{seed}",
            start_url=f"{self._placeholder_host}/start/{seed}",
        )

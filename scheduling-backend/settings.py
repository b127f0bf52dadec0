from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv


_BASE_DIR = Path(__file__).resolve().parent
# Always load the env file that lives next to this settings module.
load_dotenv(_BASE_DIR / ".env")


def _csv_env(key: str, default: str | None = None) -> list[str]:
    raw = os.getenv(key, default or "")
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    supabase_url: str | None
    supabase_key: str | None
    slot_step_minutes: int
    zoom_api_base: str
    zoom_api_token: str | None
    zoom_host_email: str | None
    zoom_placeholder_host: str
    cors_origins: List[str]
    log_level: str


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_KEY"),
        slot_step_minutes=int(os.getenv("SLOT_STEP_MINUTES", "15")),
        zoom_api_base=os.getenv("ZOOM_API_BASE", "https://api.zoom.us/v2"),
        zoom_api_token=os.getenv("ZOOM_API_TOKEN"),
        zoom_host_email=os.getenv("ZOOM_HOST_EMAIL"),
        zoom_placeholder_host=os.getenv("ZOOM_PLACEHOLDER_HOST", "https://zoom.example.com"),
        cors_origins=_csv_env("BACKEND_CORS_ORIGINS", "*"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )

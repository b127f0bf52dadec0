from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import List, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidTimeZoneError, ValidationError

MINUTES_PER_DAY = 24 * 60
MAX_DATE_SPAN = 8
MAX_LOOKAHEAD_DAYS = 62

INDEX_TO_WEEKDAY = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

DateLike = Union[date, str]


@lru_cache(maxsize=128)
def get_zone(time_zone: str) -> ZoneInfo:
    if not time_zone:
        raise InvalidTimeZoneError(str(time_zone))
    try:
        return ZoneInfo(time_zone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimeZoneError(time_zone) from exc


def parse_civil_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as exc:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc


def format_utc_instant(instant: datetime) -> str:
    """Render an instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    value = _as_utc(instant)
    millis = value.microsecond // 1000
    return f"{value.strftime('%Y-%m-%dT%H:%M:%S')}.{millis:03d}Z"


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _offset_at(instant: datetime, zone: ZoneInfo) -> timedelta:
    return instant.astimezone(zone).utcoffset() or timedelta(0)


def civil_date_to_utc(day: DateLike, minute_of_day: int, time_zone: str) -> datetime:
    """Interpret ``minute_of_day`` on ``day`` in ``time_zone`` as a UTC instant.

    The first guess treats the civil value as UTC and subtracts the zone offset
    observed at that guess. Near a DST transition the guess can sit in a
    different offset regime than the answer, so the offset is re-read at the
    result and applied once more if it changed.
    """
    zone = get_zone(time_zone)
    civil = parse_civil_date(day)
    naive = datetime(civil.year, civil.month, civil.day, tzinfo=timezone.utc) + timedelta(
        minutes=minute_of_day
    )
    offset = _offset_at(naive, zone)
    utc = naive - offset
    revised = _offset_at(utc, zone)
    if revised != offset:
        utc = naive - revised
    return utc


def civil_date_in_zone(instant: datetime, time_zone: str) -> date:
    return _as_utc(instant).astimezone(get_zone(time_zone)).date()


def civil_time_label_in_zone(instant: datetime, time_zone: str) -> str:
    local = _as_utc(instant).astimezone(get_zone(time_zone))
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {meridiem}"


def minutes_since_midnight_in_zone(instant: datetime, time_zone: str) -> int:
    local = _as_utc(instant).astimezone(get_zone(time_zone))
    return local.hour * 60 + local.minute


def weekday_index_for_date(day: DateLike, time_zone: str) -> int:
    sample = civil_date_to_utc(day, 12 * 60, time_zone)
    local = sample.astimezone(get_zone(time_zone))
    # date.weekday() counts from Monday
    return (local.weekday() + 1) % 7


def day_label(day_index: int) -> str:
    if 0 <= day_index < len(INDEX_TO_WEEKDAY):
        return INDEX_TO_WEEKDAY[day_index]
    return INDEX_TO_WEEKDAY[0]


def add_days(day: DateLike, days: int) -> date:
    return parse_civil_date(day) + timedelta(days=days)


def list_dates_between(start: DateLike, end: DateLike) -> List[date]:
    start_day = parse_civil_date(start)
    end_day = parse_civil_date(end)
    if start_day == end_day:
        return [start_day]
    dates: List[date] = []
    current = start_day
    iterations = 0
    while current <= end_day and iterations < MAX_DATE_SPAN:
        dates.append(current)
        current = current + timedelta(days=1)
        iterations += 1
    if end_day not in dates:
        dates.append(end_day)
    return list(dict.fromkeys(dates))


def list_dates_from_start(start: DateLike, count: int) -> List[date]:
    start_day = parse_civil_date(start)
    total = max(1, min(count, MAX_LOOKAHEAD_DAYS))
    return [start_day + timedelta(days=offset) for offset in range(total)]

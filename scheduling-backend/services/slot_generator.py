from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .meeting_types import effective_time_zone
from .models import (
    Blackout,
    Booking,
    MeetingType,
    ScheduleInputs,
    ScheduleSettings,
    Slot,
    WeeklyAvailability,
    WeeklyBlackout,
)
from .pattern_hash import pattern_hash
from .timezones import (
    MINUTES_PER_DAY,
    DateLike,
    civil_date_in_zone,
    civil_date_to_utc,
    civil_time_label_in_zone,
    format_utc_instant,
    list_dates_between,
    list_dates_from_start,
    minutes_since_midnight_in_zone,
    parse_civil_date,
    weekday_index_for_date,
)

LOG = logging.getLogger(__name__)

DEFAULT_STEP_MINUTES = 15
DEFAULT_BUSY_PERCENT = 60
MIN_BUSY_PERCENT = 10
MAX_BUSY_PERCENT = 90
DAY_START_MINUTES = 7 * 60
NIGHT_START_MINUTES = 21 * 60

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and self.end > other.start


def _padded(start: datetime, end: datetime, meeting_type: MeetingType) -> Interval:
    return Interval(
        start=start - timedelta(minutes=meeting_type.buffer_before_minutes),
        end=end + timedelta(minutes=meeting_type.buffer_after_minutes),
    )


class SlotGenerator:
    """Computes bookable slots for a meeting type on a viewer's civil date."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        step_minutes: int = DEFAULT_STEP_MINUTES,
    ) -> None:
        self._clock = clock or _utc_now
        self.step_minutes = step_minutes

    def now(self) -> datetime:
        return self._clock()

    def compute_slots(
        self,
        meeting_type: MeetingType,
        availability: Sequence[WeeklyAvailability],
        weekly_blackouts: Sequence[WeeklyBlackout],
        blackouts: Sequence[Blackout],
        bookings: Sequence[Booking],
        day: DateLike,
        viewer_time_zone: str,
        schedule_settings: Optional[ScheduleSettings] = None,
        *,
        now: Optional[datetime] = None,
    ) -> List[Slot]:
        viewer_day = parse_civil_date(day)
        viewer_window = Interval(
            start=civil_date_to_utc(viewer_day, 0, viewer_time_zone),
            end=civil_date_to_utc(viewer_day, MINUTES_PER_DAY, viewer_time_zone),
        )
        viewer_day_zone = effective_time_zone(meeting_type, viewer_day, schedule_settings)
        meeting_dates = list_dates_between(
            civil_date_in_zone(viewer_window.start, viewer_day_zone),
            civil_date_in_zone(viewer_window.end - timedelta(milliseconds=1), viewer_day_zone),
        )

        current = now or self.now()
        earliest = current + timedelta(minutes=meeting_type.min_notice_minutes)
        latest = current + timedelta(days=meeting_type.max_horizon_days)

        blackout_windows = [
            _padded(block.starts_at_utc, block.ends_at_utc, meeting_type) for block in blackouts
        ]
        booking_windows = [
            _padded(booking.starts_at_utc, booking.ends_at_utc, meeting_type)
            for booking in bookings
            if booking.is_active
        ]

        slots: List[Slot] = []
        for meeting_date in meeting_dates:
            meeting_zone = effective_time_zone(meeting_type, meeting_date, schedule_settings)
            day_index = weekday_index_for_date(meeting_date, meeting_zone)
            windows = [item for item in availability if item.day_of_week == day_index]
            if not windows:
                continue
            recurring_windows = self._recurring_blackout_windows(
                meeting_type, weekly_blackouts, meeting_date, day_index, meeting_zone
            )
            blocking = blackout_windows + recurring_windows + booking_windows

            day_slots: List[Slot] = []
            seen = set()
            for window in windows:
                for start_minutes in self._candidate_minutes(meeting_type, window):
                    starts_at = civil_date_to_utc(meeting_date, start_minutes, meeting_zone)
                    # overlapping availability rows yield the same start twice
                    if starts_at in seen:
                        continue
                    ends_at = starts_at + timedelta(minutes=meeting_type.duration_minutes)
                    if starts_at < earliest or starts_at > latest:
                        continue
                    if starts_at < viewer_window.start or starts_at >= viewer_window.end:
                        continue
                    if meeting_type.no_overnight_slots:
                        viewer_minutes = minutes_since_midnight_in_zone(starts_at, viewer_time_zone)
                        if viewer_minutes < DAY_START_MINUTES or viewer_minutes >= NIGHT_START_MINUTES:
                            continue
                    busy = _padded(starts_at, ends_at, meeting_type)
                    if any(busy.overlaps(block) for block in blocking):
                        continue
                    seen.add(starts_at)
                    day_slots.append(
                        Slot(
                            starts_at_utc=starts_at,
                            ends_at_utc=ends_at,
                            label=civil_time_label_in_zone(starts_at, viewer_time_zone),
                            meeting_start_local=civil_time_label_in_zone(starts_at, meeting_zone),
                        )
                    )

            day_slots.sort(key=lambda slot: slot.starts_at_utc)
            shaped = self._shape(meeting_type, meeting_date, day_slots)
            if schedule_settings and schedule_settings.global_unavailable:
                shaped = [replace(slot, is_busy=True) for slot in shaped]
            LOG.debug(
                "computed slots",
                extra={
                    "meeting_type_id": meeting_type.id,
                    "meeting_date": meeting_date.isoformat(),
                    "time_zone": meeting_zone,
                    "candidates": len(day_slots),
                    "returned": len(shaped),
                },
            )
            slots.extend(shaped)

        slots.sort(key=lambda slot: slot.starts_at_utc)
        return slots

    def compute_for_inputs(
        self,
        inputs: ScheduleInputs,
        day: DateLike,
        viewer_time_zone: str,
        *,
        now: Optional[datetime] = None,
    ) -> List[Slot]:
        return self.compute_slots(
            inputs.meeting_type,
            inputs.availability,
            inputs.weekly_blackouts,
            inputs.blackouts,
            inputs.bookings,
            day,
            viewer_time_zone,
            inputs.schedule_settings,
            now=now,
        )

    def compute_days(
        self,
        inputs: ScheduleInputs,
        start_day: DateLike,
        days: int,
        viewer_time_zone: str,
        *,
        now: Optional[datetime] = None,
    ) -> List[Tuple[date, List[Slot]]]:
        current = now or self.now()
        return [
            (day, self.compute_for_inputs(inputs, day, viewer_time_zone, now=current))
            for day in list_dates_from_start(start_day, days)
        ]

    def _candidate_minutes(self, meeting_type: MeetingType, window: WeeklyAvailability) -> Iterable[int]:
        first = window.start_time_minutes + meeting_type.buffer_before_minutes
        last = (
            window.end_time_minutes
            - meeting_type.duration_minutes
            - meeting_type.buffer_after_minutes
        )
        if last < first:
            return range(0)
        return range(first, last + 1, self.step_minutes)

    @staticmethod
    def _recurring_blackout_windows(
        meeting_type: MeetingType,
        weekly_blackouts: Sequence[WeeklyBlackout],
        meeting_date: date,
        day_index: int,
        meeting_zone: str,
    ) -> List[Interval]:
        windows: List[Interval] = []
        for block in weekly_blackouts:
            if block.day_of_week != day_index:
                continue
            padded_start = max(0, block.start_time_minutes - meeting_type.buffer_before_minutes)
            padded_end = min(MINUTES_PER_DAY, block.end_time_minutes + meeting_type.buffer_after_minutes)
            interval = Interval(
                start=civil_date_to_utc(meeting_date, padded_start, meeting_zone),
                end=civil_date_to_utc(meeting_date, padded_end, meeting_zone),
            )
            if interval.end > interval.start:
                windows.append(interval)
        return windows

    @staticmethod
    def _shape(meeting_type: MeetingType, meeting_date: date, day_slots: List[Slot]) -> List[Slot]:
        mode = meeting_type.availability_mode
        if mode == "daily_limit" and meeting_type.daily_limit > 0:
            return day_slots[: meeting_type.daily_limit]
        if mode == "busy" and day_slots:
            percent = meeting_type.busy_buffer_percent or DEFAULT_BUSY_PERCENT
            percent = max(MIN_BUSY_PERCENT, min(MAX_BUSY_PERCENT, percent))
            target_hidden = math.ceil(len(day_slots) * percent / 100)
            hide_count = min(len(day_slots) - 1, target_hidden)
            if hide_count > 0:
                version = meeting_type.busy_pattern_version or 1
                seed = pattern_hash(f"{meeting_type.id}:{meeting_date.isoformat()}:{version}")
                ranked = sorted(
                    day_slots,
                    key=lambda slot: pattern_hash(f"{seed}:{format_utc_instant(slot.starts_at_utc)}"),
                )
                hidden = {slot.starts_at_utc for slot in ranked[:hide_count]}
                return [
                    replace(slot, is_busy=True) if slot.starts_at_utc in hidden else slot
                    for slot in day_slots
                ]
        return day_slots


def find_bookable_slot(slots: Iterable[Slot], starts_at: datetime) -> Optional[Slot]:
    for slot in slots:
        if slot.starts_at_utc == starts_at and not slot.is_busy:
            return slot
    return None

"""Exceptions raised by the scheduling services and flows."""

from __future__ import annotations


class SchedulingError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError):
    status_code = 400


class InvalidTimeZoneError(SchedulingError, ValueError):
    """Raised when an IANA zone identifier cannot be resolved."""

    status_code = 400

    def __init__(self, time_zone: str) -> None:
        super().__init__(f"Unknown time zone '{time_zone}'")
        self.time_zone = time_zone


class AdminRequiredError(SchedulingError):
    status_code = 401


class PermissionDeniedError(SchedulingError):
    status_code = 403


class NotFoundError(SchedulingError):
    status_code = 404


class SlotUnavailableError(SchedulingError):
    status_code = 409

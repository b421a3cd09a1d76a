# backend/schedule_api/errors.py
"""
Error taxonomy for the events API.

Every error carries the HTTP status it maps to and a message that is safe to
show to the client. The exception handlers in ``main`` turn these into the
``{"success": false, "error": ...}`` envelope.
"""

from __future__ import annotations

from typing import Optional

INVALID_FIELD = "InvalidField"
INVALID_RANGE = "InvalidRange"


class ScheduleError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class Unauthenticated(ScheduleError):
    status_code = 401
    message = "Authentication required"


class EventValidationError(ScheduleError):
    """Payload failed the schema or the start < end rule."""

    status_code = 400

    def __init__(self, kind: str, field: str, message: str) -> None:
        self.kind = kind
        self.field = field
        super().__init__(f"{field}: {message}")


class EventNotFound(ScheduleError):
    """No event with this id is owned by the caller (missing or not theirs)."""

    status_code = 404
    message = "Event not found"


class StoreFailure(ScheduleError):
    status_code = 500
    message = "The event store is unavailable, please try again later"

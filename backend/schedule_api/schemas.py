# backend/schedule_api/schemas.py
"""
Request validation, wire conversion and response envelopes for events.

Incoming payloads are checked by ``EventIn``; failures are reduced to a
single field-attributed ``EventValidationError``. Stored rows are converted
to ``EventOut`` (ISO-8601 strings, unset fields omitted) right before they
are wrapped in a ``SuccessEnvelope``.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Mapping, Optional, Sequence, TypeVar

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from .errors import INVALID_FIELD, INVALID_RANGE, EventValidationError
from .models import Event

T = TypeVar("T")

# ───────────────────────── Timestamp helpers ────────────────────────
def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = isoparse(value)
    else:
        raise ValueError("expected an ISO-8601 string")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    # Some backends (SQLite) hand back naive values; they were stored as UTC.
    # Wire precision is milliseconds; finer digits the store keeps are cut here.
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ───────────────────────── Request schema ───────────────────────────
class EventIn(BaseModel):
    """Request schema for event creation/update."""
    model_config = ConfigDict(extra="ignore")  # ownerId/userId and anything else are dropped

    id:          Optional[uuid.UUID] = None  # round-tripped only; the path decides the target
    title:       str = Field(min_length=1)
    description: Optional[str] = None
    startTime:   datetime
    endTime:     datetime
    createdAt:   Optional[datetime] = None   # validated, but the store owns timestamps
    updatedAt:   Optional[datetime] = None

    @field_validator("startTime", "endTime", "createdAt", "updatedAt", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Any:
        if value is None:
            return value
        try:
            return parse_timestamp(value)
        except (ValueError, OverflowError):
            raise PydanticCustomError("invalid_datetime", "must be a valid ISO-8601 date-time")

    @field_validator("endTime")
    @classmethod
    def _end_after_start(cls, value: datetime, info: ValidationInfo) -> datetime:
        start = info.data.get("startTime")
        if start is not None and not start < value:
            raise PydanticCustomError("invalid_range", "end time must be after start time")
        return value


_FIELD_ORDER = ("body", "title", "startTime", "endTime", "createdAt", "updatedAt", "description", "id")

_FIELD_MESSAGES = {
    "body":        "request body must be a JSON object",
    "title":       "must be a non-empty string",
    "description": "must be a string",
    "startTime":   "must be a valid ISO-8601 date-time",
    "endTime":     "must be a valid ISO-8601 date-time",
    "createdAt":   "must be a valid ISO-8601 date-time",
    "updatedAt":   "must be a valid ISO-8601 date-time",
    "id":          "must be a UUID",
}


def _error_field(error: Mapping[str, Any]) -> str:
    loc = tuple(error.get("loc") or ())
    if loc and loc[0] == "body":
        loc = loc[1:]
    # Malformed JSON is located by character offset, not by field name.
    return loc[0] if loc and isinstance(loc[0], str) else "body"


def validation_error_from(errors: Sequence[Mapping[str, Any]]) -> EventValidationError:
    """
    Reduce pydantic error dicts to the single failure a client should fix first.

    Field errors win over the start/end ordering rule, and fields are ranked
    title, startTime, endTime, createdAt, updatedAt.
    """
    if not errors:
        return EventValidationError(INVALID_FIELD, "body", _FIELD_MESSAGES["body"])

    def rank(error: Mapping[str, Any]) -> tuple:
        field = _error_field(error)
        position = _FIELD_ORDER.index(field) if field in _FIELD_ORDER else len(_FIELD_ORDER)
        return (error.get("type") == "invalid_range", position)

    first = sorted(errors, key=rank)[0]
    if first.get("type") == "invalid_range":
        return EventValidationError(INVALID_RANGE, "endTime", "end time must be after start time")
    field = _error_field(first)
    return EventValidationError(INVALID_FIELD, field, _FIELD_MESSAGES.get(field, "is invalid"))


def validate_event_payload(data: Any) -> EventIn:
    """Validate a raw payload; raise ``EventValidationError`` on the first failing rule."""
    try:
        return EventIn.model_validate(data)
    except ValidationError as exc:
        raise validation_error_from(exc.errors()) from None


def to_storage(payload: EventIn) -> Dict[str, Any]:
    """Column values for a validated payload. Mutable fields only."""
    return {
        "title": payload.title,
        "description": payload.description,
        "start_time": payload.startTime,
        "end_time": payload.endTime,
    }


# ───────────────────────── Wire schema ──────────────────────────────
class EventOut(BaseModel):
    """Response schema for an event row, timestamps as ISO-8601 strings."""
    id:          str
    title:       str
    description: Optional[str] = None
    startTime:   str
    endTime:     str
    createdAt:   Optional[str] = None
    updatedAt:   Optional[str] = None


def to_wire(event: Event) -> EventOut:
    return EventOut(
        id=str(event.id),
        title=event.title,
        description=event.description or None,
        startTime=format_timestamp(event.start_time),
        endTime=format_timestamp(event.end_time),
        createdAt=format_timestamp(event.created_at),
        updatedAt=format_timestamp(event.updated_at),
    )


# ───────────────────────── Envelopes ────────────────────────────────
class SuccessEnvelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: str

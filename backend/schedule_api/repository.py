# backend/schedule_api/repository.py
"""
Ownership-scoped event operations.

Every function takes the request's ``Session`` and the caller's ``owner_id``
explicitly, and every per-id lookup filters on both the id and the owner, so
another user's event looks exactly like a missing one.
"""

from __future__ import annotations

import contextlib
import logging
import uuid
from typing import Iterator, List

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import EventNotFound, StoreFailure
from .models import Event
from .schemas import EventIn, to_storage

log = logging.getLogger(__name__)


@contextlib.contextmanager
def _store_errors(db: Session, action: str) -> Iterator[None]:
    """Roll back and re-raise datastore errors as ``StoreFailure``."""
    try:
        yield
    except SQLAlchemyError as exc:
        log.exception("Datastore error while trying to %s", action)
        db.rollback()
        raise StoreFailure() from exc


def _parse_event_id(event_id: str) -> uuid.UUID:
    # Malformed ids cannot name any event, so they are reported as not found.
    try:
        return uuid.UUID(str(event_id))
    except ValueError:
        log.debug("Rejecting malformed event id %r", event_id)
        raise EventNotFound() from None


def _owned_event(db: Session, owner_id: str, event_id: str) -> Event:
    ev_id = _parse_event_id(event_id)
    q = select(Event).where(Event.id == ev_id, Event.user_id == owner_id)
    ev = db.execute(q).scalars().first()
    if ev is None:
        raise EventNotFound()
    return ev


def list_events(db: Session, owner_id: str) -> List[Event]:
    with _store_errors(db, "list events"):
        q = (
            select(Event)
            .where(Event.user_id == owner_id)
            .order_by(Event.start_time.asc(), Event.created_at.asc(), Event.id.asc())
        )
        return list(db.execute(q).scalars().all())


def get_event(db: Session, owner_id: str, event_id: str) -> Event:
    with _store_errors(db, "fetch an event"):
        return _owned_event(db, owner_id, event_id)


def create_event(db: Session, owner_id: str, payload: EventIn) -> Event:
    """Insert a new event owned by ``owner_id``; the store assigns id and timestamps."""
    with _store_errors(db, "create an event"):
        ev = Event(user_id=owner_id, **to_storage(payload))
        db.add(ev)
        db.commit()
        db.refresh(ev)
    log.info("Created event %s for user %s", ev.id, owner_id)
    return ev


def update_event(db: Session, owner_id: str, event_id: str, payload: EventIn) -> Event:
    """Replace every mutable field of an owned event. Never creates a row."""
    with _store_errors(db, "update an event"):
        ev = _owned_event(db, owner_id, event_id)
        for column, value in to_storage(payload).items():
            setattr(ev, column, value)
        # onupdate only fires when a column changed; an identical save still counts
        ev.updated_at = func.now()
        db.commit()
        db.refresh(ev)
    log.info("Updated event %s for user %s", ev.id, owner_id)
    return ev


def delete_event(db: Session, owner_id: str, event_id: str) -> Event:
    """Hard-delete an owned event and return it as it was before deletion."""
    with _store_errors(db, "delete an event"):
        ev = _owned_event(db, owner_id, event_id)
        db.delete(ev)
        db.commit()
    log.info("Deleted event %s for user %s", ev.id, owner_id)
    return ev

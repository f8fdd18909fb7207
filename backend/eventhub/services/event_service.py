"""Event management service — creation, queries, creator edits and deletion.

Responsibilities:
- Authorization hook: only the creator may update or delete an event
- Optimistic locking via the version field
- Capacity floor: an edit never leaves more attendees than seats
- Read-side listing with search, category and date filters

Attendance itself is never written here; see admission_service.
"""
import logging
from datetime import datetime
from typing import Optional, Any

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from eventhub.exceptions import (
    CapacityBelowAttendance,
    EventNotFound,
    ForbiddenError,
    UserNotFound,
    VersionConflict,
)
from eventhub.models.attendee import EventAttendee
from eventhub.models.event import Event, EventCategory
from eventhub.models.user import User
from eventhub.timeutils import to_utc, utcnow

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "date", "location", "category", "capacity", "image")


def _check_authorization(event: Event, actor_user_id: str) -> None:
    if event.creator_id != actor_user_id:
        raise ForbiddenError()


def get_event(db: Session, event_id: str) -> Event:
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if not event:
        raise EventNotFound()
    return event


def create_event(
    db: Session,
    creator_id: str,
    title: str,
    description: str,
    date: datetime,
    location: str,
    capacity: int,
    category: EventCategory = EventCategory.other,
    image: str = "",
) -> Event:
    """Create an event owned by `creator_id`, starting with no attendees."""
    if db.get(User, creator_id) is None:
        raise UserNotFound()

    event = Event(
        title=title,
        description=description,
        date=to_utc(date),
        location=location,
        category=category,
        capacity=capacity,
        image=image,
        creator_id=creator_id,
        attendee_count=0,
        version=1,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event '%s' (%s) by %s with capacity %d", title, event.event_id, creator_id, capacity)
    return event


def list_events(
    db: Session,
    search: Optional[str] = None,
    category: Optional[EventCategory] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    include_past: bool = False,
    now: Optional[datetime] = None,
) -> list[Event]:
    """List events by date. Upcoming only, unless a date range or `include_past` is given."""
    query = db.query(Event)
    if start_date or end_date:
        if start_date:
            query = query.filter(Event.date >= to_utc(start_date))
        if end_date:
            query = query.filter(Event.date <= to_utc(end_date))
    elif not include_past:
        query = query.filter(Event.date >= (now or utcnow()))
    if search:
        query = query.filter(or_(
            Event.title.icontains(search, autoescape=True),
            Event.description.icontains(search, autoescape=True),
        ))
    if category:
        query = query.filter(Event.category == category)
    return query.order_by(Event.date).all()


def list_my_events(db: Session, user_id: str) -> dict[str, list[Event]]:
    """Events the user created, and events they attend but did not create."""
    created = db.query(Event).filter(Event.creator_id == user_id).order_by(Event.date).all()
    attending = (
        db.query(Event)
        .join(EventAttendee)
        .filter(EventAttendee.user_id == user_id, Event.creator_id != user_id)
        .order_by(Event.date)
        .all()
    )
    return {"created": created, "attending": attending}


def update_event(
    db: Session,
    event_id: str,
    actor_user_id: str,
    version: int,
    updates: dict[str, Any],
) -> Event:
    """Apply a creator's edit with optimistic locking.

    The version check and the capacity floor are part of the UPDATE's WHERE
    clause, so a join that lands between our read and our write makes the
    write miss instead of leaving the event over capacity.
    """
    event = get_event(db, event_id)
    _check_authorization(event, actor_user_id)

    values = {field: value for field, value in updates.items() if field in EDITABLE_FIELDS}
    if "date" in values:
        values["date"] = to_utc(values["date"])

    criteria = [Event.event_id == event_id, Event.version == version]
    if "capacity" in values:
        criteria.append(Event.attendee_count <= values["capacity"])

    stmt = (
        update(Event)
        .where(*criteria)
        .values(**values, version=Event.version + 1)
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        db.rollback()
        db.expire_all()
        current = db.get(Event, event_id)
        if current is None:
            raise EventNotFound()
        if current.version != version:
            raise VersionConflict(
                f"Version mismatch: expected {current.version}, got {version}. Re-fetch and retry."
            )
        if "capacity" not in values:
            raise VersionConflict()
        raise CapacityBelowAttendance(
            f"Capacity {values['capacity']} is below the {current.attendee_count} current attendees"
        )

    db.commit()
    db.expire_all()
    event = get_event(db, event_id)
    logger.info("Updated event %s to version %d", event_id, event.version)
    return event


def delete_event(db: Session, event_id: str, actor_user_id: str) -> None:
    """Delete an event and its attendance (creator only)."""
    event = get_event(db, event_id)
    _check_authorization(event, actor_user_id)
    db.delete(event)
    db.commit()
    logger.info("Deleted event %s by %s", event_id, actor_user_id)

"""Event store handle used by the admission controller.

Each mutating call is a single conditional statement against the `events` row
followed by the matching change to `event_attendees`, wrapped in a savepoint.
The conditional UPDATE is what serializes concurrent RSVPs for one event: on
PostgreSQL it takes the row lock and re-evaluates its WHERE clause after any
competing writer commits; on SQLite the whole database is locked from
BEGIN IMMEDIATE. Joins and leaves both touch the event row before the
attendee row so they always lock in the same order.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventhub.models.attendee import EventAttendee
from eventhub.models.event import Event

logger = logging.getLogger(__name__)


def _membership(event_id: str, user_id: str):
    return (
        select(EventAttendee.user_id)
        .where(EventAttendee.event_id == event_id, EventAttendee.user_id == user_id)
        .exists()
    )


class EventStore:
    """Store operations for one session. Transaction control stays with the caller."""

    def __init__(self, session: Session):
        self.session = session

    def read_event(self, event_id: str) -> Optional[Event]:
        """Read the current committed state, bypassing the identity map."""
        self.session.expire_all()
        return self.session.get(Event, event_id)

    def count_attendees(self, event_id: str) -> int:
        stmt = select(func.count()).select_from(EventAttendee).where(EventAttendee.event_id == event_id)
        return self.session.execute(stmt).scalar_one()

    def conditional_add_attendee(self, event_id: str, user_id: str, now: datetime) -> Optional[Event]:
        """Add `user_id` only if the event is open, not full and the user is not a member.

        Returns the updated event, or None when the guard did not hold at the
        moment of the write.
        """
        guarded = (
            update(Event)
            .where(
                Event.event_id == event_id,
                Event.date > now,
                Event.attendee_count < Event.capacity,
                ~_membership(event_id, user_id),
            )
            .values(attendee_count=Event.attendee_count + 1, version=Event.version + 1)
            .execution_options(synchronize_session=False)
        )
        savepoint = self.session.begin_nested()
        try:
            if self.session.execute(guarded).rowcount != 1:
                savepoint.rollback()
                return None
            self.session.execute(
                insert(EventAttendee).values(event_id=event_id, user_id=user_id, joined_at=now)
            )
        except IntegrityError as exc:
            savepoint.rollback()
            logger.info("Conditional add of %s to event %s hit a constraint: %s", user_id, event_id, exc.orig)
            return None
        savepoint.commit()
        return self.read_event(event_id)

    def remove_attendee(self, event_id: str, user_id: str) -> Optional[Event]:
        """Remove `user_id` from the event. Returns None if they were not a member."""
        guarded = (
            update(Event)
            .where(
                Event.event_id == event_id,
                Event.attendee_count > 0,
                _membership(event_id, user_id),
            )
            .values(attendee_count=Event.attendee_count - 1, version=Event.version + 1)
            .execution_options(synchronize_session=False)
        )
        savepoint = self.session.begin_nested()
        if self.session.execute(guarded).rowcount != 1:
            savepoint.rollback()
            return None
        removed = self.session.execute(
            delete(EventAttendee)
            .where(EventAttendee.event_id == event_id, EventAttendee.user_id == user_id)
            .execution_options(synchronize_session=False)
        ).rowcount
        if removed != 1:
            # a concurrent leave won between the guard and the delete
            savepoint.rollback()
            return None
        savepoint.commit()
        return self.read_event(event_id)

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

"""RSVP admission control.

Decides whether a user may join or leave an event and applies the decision
through the store's conditional write, so that an event never has more
attendees than seats and no user is counted twice, however many requests race
against it. No application lock is held: the only serialization point is the
conditional UPDATE in `EventStore`.

Join protocol:
1. Attempt the guarded add directly. The guard (open, not full, not a member)
   is evaluated by the store at the moment of the write.
2. On failure, re-read the event purely to report why: not found, expired,
   already joined or full. If none of those holds any more (a seat was freed
   in between), attempt the write again, a bounded number of times.
3. On success, re-count the attendee rows before committing. A count above
   capacity means the store's conditional write is broken; the transaction is
   rolled back and `InvariantViolation` raised.

Transient store failures roll back the session and are retried with tenacity.
A retried join whose first attempt did commit surfaces `AlreadyJoined`, never
a second seat.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from eventhub.config import settings
from eventhub.exceptions import (
    AdmissionConflict,
    AlreadyJoined,
    CapacityExceeded,
    DomainError,
    EventExpired,
    EventNotFound,
    InvariantViolation,
    NotJoined,
    StoreUnavailable,
)
from eventhub.models.event import Event, EventCategory
from eventhub.services.event_store import EventStore
from eventhub.timeutils import to_utc, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class EventSnapshot:
    """Event state as of the commit of one join or leave.

    Captured inside the transaction, so reading it never touches the store.
    """
    event_id: str
    title: str
    description: str
    date: datetime
    location: str
    category: EventCategory
    capacity: int
    image: str
    creator_id: str
    attendee_ids: tuple[str, ...]
    attendee_count: int
    spots_left: int
    version: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def of(cls, event: Event) -> "EventSnapshot":
        return cls(
            event_id=event.event_id,
            title=event.title,
            description=event.description,
            date=to_utc(event.date),
            location=event.location,
            category=event.category,
            capacity=event.capacity,
            image=event.image,
            creator_id=event.creator_id,
            attendee_ids=tuple(event.attendee_ids),
            attendee_count=event.attendee_count,
            spots_left=event.spots_left,
            version=event.version,
            created_at=to_utc(event.created_at),
            updated_at=to_utc(event.updated_at),
        )


def is_transient_store_error(exc: BaseException) -> bool:
    """Timeouts, lock waits and dropped connections; never constraint or logic errors."""
    if isinstance(exc, PoolTimeoutError):
        return True
    if isinstance(exc, DBAPIError):
        return exc.connection_invalidated or isinstance(exc, OperationalError)
    return False


def find_invariant_violations(event: Event, row_count: int) -> list[str]:
    """Compare an event against its authoritative attendee row count.

    Duplicates cannot exist as rows (the membership table is keyed on
    event and user), so a duplicate shows up as the id list being longer than
    its set.
    """
    problems = []
    if row_count > event.capacity:
        problems.append(f"{row_count} attendees exceed capacity {event.capacity}")
    if event.attendee_count != row_count:
        problems.append(f"attendee_count {event.attendee_count} != {row_count} attendee rows")
    ids = event.attendee_ids
    if len(ids) != len(set(ids)):
        problems.append("duplicate attendee ids")
    return problems


def diagnose_join(event: Optional[Event], user_id: str, now: datetime) -> Optional[DomainError]:
    """Name the rule that blocks `user_id` from joining `event`, if any."""
    if event is None:
        return EventNotFound()
    if to_utc(event.date) <= now:
        return EventExpired()
    if user_id in event.attendee_ids:
        return AlreadyJoined()
    if event.attendee_count >= event.capacity:
        return CapacityExceeded()
    return None


class AdmissionController:
    """Join/leave decisions for event attendance.

    The store handle is injected so request handlers, workers and tests can
    each bind it to their own session.
    """

    def __init__(
        self,
        store: EventStore,
        max_conflict_retries: int = settings.RSVP_MAX_CONFLICT_RETRIES,
        store_retry_attempts: int = settings.STORE_RETRY_ATTEMPTS,
        store_retry_wait: float = settings.STORE_RETRY_WAIT_SECONDS,
    ):
        self.store = store
        self.max_conflict_retries = max(1, max_conflict_retries)
        self.store_retry_attempts = max(1, store_retry_attempts)
        self.store_retry_wait = store_retry_wait

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    def join(self, event_id: str, user_id: str, now: Optional[datetime] = None) -> EventSnapshot:
        """Add `user_id` to the event's attendees or raise the reason it cannot."""
        now = to_utc(now) if now is not None else utcnow()
        snapshot = self._with_store_retries(lambda: self._join_once(event_id, user_id, now))
        logger.info("User %s joined event %s (%d/%d)", user_id, event_id, snapshot.attendee_count, snapshot.capacity)
        return snapshot

    def leave(self, event_id: str, user_id: str) -> EventSnapshot:
        """Remove `user_id` from the event's attendees or raise the reason it cannot."""
        snapshot = self._with_store_retries(lambda: self._leave_once(event_id, user_id))
        logger.info("User %s left event %s (%d/%d)", user_id, event_id, snapshot.attendee_count, snapshot.capacity)
        return snapshot

    # ------------------------------------------------------------------
    # Single attempts (one transaction each)
    # ------------------------------------------------------------------
    def _join_once(self, event_id: str, user_id: str, now: datetime) -> EventSnapshot:
        try:
            for _ in range(self.max_conflict_retries):
                event = self.store.conditional_add_attendee(event_id, user_id, now)
                if event is not None:
                    self._verify_after_join(event)
                    snapshot = EventSnapshot.of(event)
                    self.store.commit()
                    return snapshot

                rejection = diagnose_join(self.store.read_event(event_id), user_id, now)
                if rejection is not None:
                    logger.info("Join of event %s by %s rejected: %s", event_id, user_id, rejection.reason)
                    raise rejection
                logger.debug("Join of event %s by %s lost a race with no standing reason; retrying", event_id, user_id)

            logger.warning("Join of event %s by %s gave up after %d conflicts", event_id, user_id, self.max_conflict_retries)
            raise AdmissionConflict()
        except Exception:
            self.store.rollback()
            raise

    def _leave_once(self, event_id: str, user_id: str) -> EventSnapshot:
        try:
            event = self.store.remove_attendee(event_id, user_id)
            if event is None:
                if self.store.read_event(event_id) is None:
                    raise EventNotFound()
                logger.info("Leave of event %s by %s rejected: not_joined", event_id, user_id)
                raise NotJoined()
            snapshot = EventSnapshot.of(event)
            self.store.commit()
            return snapshot
        except Exception:
            self.store.rollback()
            raise

    def _verify_after_join(self, event: Event) -> None:
        problems = find_invariant_violations(event, self.store.count_attendees(event.event_id))
        if problems:
            logger.critical(
                "INVARIANT VIOLATION on event %s after join: %s; rolling back",
                event.event_id,
                "; ".join(problems),
            )
            raise InvariantViolation(f"Event {event.event_id}: {'; '.join(problems)}")

    # ------------------------------------------------------------------
    # Transient failure handling
    # ------------------------------------------------------------------
    def _with_store_retries(self, attempt_fn: Callable[[], T]) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(self.store_retry_attempts),
            wait=wait_exponential(multiplier=self.store_retry_wait / 4, max=self.store_retry_wait),
            retry=retry_if_exception(is_transient_store_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            return retrying(attempt_fn)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            logger.error("Event store unavailable after %d attempts: %s", self.store_retry_attempts, cause)
            raise StoreUnavailable() from cause

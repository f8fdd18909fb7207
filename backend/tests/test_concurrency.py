"""Concurrent RSVPs against one event.

Every worker thread gets its own session (and so its own connection), the
way separate request handlers would; nothing is shared in-process except
the database file.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

from eventhub.exceptions import DomainError
from eventhub.models.attendee import EventAttendee
from eventhub.models.event import Event
from eventhub.services.admission_service import AdmissionController, find_invariant_violations
from eventhub.services.event_store import EventStore
from tests.conftest import add_event, add_user


def _run_concurrently(session_factory, calls):
    """Run (action, event_id, user_id) calls in parallel; return one outcome per call."""
    barrier = threading.Barrier(len(calls))

    def worker(call):
        action, event_id, user_id = call
        with session_factory() as session:
            controller = AdmissionController(EventStore(session), store_retry_attempts=5, store_retry_wait=0.05)
            barrier.wait()
            try:
                getattr(controller, action)(event_id, user_id)
                return "ok"
            except DomainError as exc:
                return exc.reason

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(worker, calls))


def _final_state(session_factory, event_id):
    with session_factory() as session:
        event = session.get(Event, event_id)
        rows = session.query(EventAttendee).filter(EventAttendee.event_id == event_id).count()
        return sorted(event.attendee_ids), find_invariant_violations(event, rows), event.attendee_count


def test_distinct_users_race_for_limited_seats(db, session_factory):
    creator = add_user(db, "Creator")
    users = [add_user(db, f"User{i}") for i in range(10)]
    event_id = add_event(db, creator, capacity=4)

    outcomes = _run_concurrently(session_factory, [("join", event_id, u) for u in users])

    assert outcomes.count("ok") == 4
    assert outcomes.count("capacity_exceeded") == 6

    attendees, problems, count = _final_state(session_factory, event_id)
    assert problems == []
    assert count == 4
    assert attendees == sorted(u for u, o in zip(users, outcomes) if o == "ok")


def test_same_user_races_itself(db, session_factory):
    creator = add_user(db, "Creator")
    alice = add_user(db, "Alice")
    event_id = add_event(db, creator, capacity=5)

    outcomes = _run_concurrently(session_factory, [("join", event_id, alice)] * 6)

    assert outcomes.count("ok") == 1
    assert outcomes.count("already_joined") == 5

    attendees, problems, count = _final_state(session_factory, event_id)
    assert attendees == [alice]
    assert problems == []
    assert count == 1


def test_mixed_joins_and_leaves_stay_within_capacity(db, session_factory):
    creator = add_user(db, "Creator")
    members = [add_user(db, f"Member{i}") for i in range(2)]
    joiners = [add_user(db, f"Joiner{i}") for i in range(5)]
    event_id = add_event(db, creator, capacity=2)

    with session_factory() as session:
        controller = AdmissionController(EventStore(session))
        for member in members:
            controller.join(event_id, member)

    calls = [("leave", event_id, m) for m in members] + [("join", event_id, j) for j in joiners]
    outcomes = _run_concurrently(session_factory, calls)

    leave_outcomes, join_outcomes = outcomes[:2], outcomes[2:]
    assert leave_outcomes == ["ok", "ok"]
    assert set(join_outcomes) <= {"ok", "capacity_exceeded"}
    assert join_outcomes.count("ok") <= 2

    attendees, problems, count = _final_state(session_factory, event_id)
    assert problems == []
    assert attendees == sorted(j for j, o in zip(joiners, join_outcomes) if o == "ok")
    assert count == len(attendees)

"""Event API routes — delegates to event_service for creator rules and locking."""
import logging
from typing import Optional
from datetime import datetime
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.models.event import EventCategory
from eventhub.schemas.event import EventCreate, EventUpdate, EventOut
from eventhub.services import event_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(payload: EventCreate, db: Session = Depends(get_db)):
    """Create a new event with no attendees."""
    return event_service.create_event(db=db, **payload.model_dump())


@router.get("/", response_model=list[EventOut])
def list_events(
    search: Optional[str] = Query(None, description="Case-insensitive match on title or description"),
    category: Optional[EventCategory] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    include_past: bool = Query(False),
    db: Session = Depends(get_db),
):
    """List events, upcoming first, with optional filters."""
    return event_service.list_events(
        db,
        search=search,
        category=category,
        start_date=start_date,
        end_date=end_date,
        include_past=include_past,
    )


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, db: Session = Depends(get_db)):
    """Fetch a single event with its attendees."""
    return event_service.get_event(db, event_id)


@router.put("/{event_id}", response_model=EventOut)
def update_event(
    event_id: str,
    payload: EventUpdate,
    actor_user_id: str = Query(..., description="ID of the user performing the update"),
    db: Session = Depends(get_db),
):
    """Update an event (creator only, optimistic locking enforced)."""
    updates = payload.model_dump(exclude_unset=True, exclude={"version"})
    return event_service.update_event(
        db=db,
        event_id=event_id,
        actor_user_id=actor_user_id,
        version=payload.version,
        updates=updates,
    )


@router.delete("/{event_id}")
def delete_event(
    event_id: str,
    actor_user_id: str = Query(..., description="ID of the user performing the delete"),
    db: Session = Depends(get_db),
):
    """Delete an event (creator only)."""
    event_service.delete_event(db, event_id, actor_user_id)
    return {"message": "Event deleted successfully"}

"""RSVP API routes — thin translation onto the admission controller."""
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.exceptions import UserNotFound
from eventhub.models.user import User
from eventhub.schemas.event import MyEventsOut
from eventhub.schemas.rsvp import ErrorOut, RSVPOut
from eventhub.services import event_service
from eventhub.services.admission_service import AdmissionController
from eventhub.services.event_store import EventStore

logger = logging.getLogger(__name__)
router = APIRouter()

REJECTIONS = {
    400: {"model": ErrorOut},
    404: {"model": ErrorOut},
    409: {"model": ErrorOut},
    503: {"model": ErrorOut},
}


def get_admission_controller(db: Session = Depends(get_db)) -> AdmissionController:
    return AdmissionController(EventStore(db))


def _require_user(db: Session, user_id: str) -> None:
    if db.get(User, user_id) is None:
        raise UserNotFound()
    # end the lookup's read transaction before the controller starts its own
    db.rollback()


@router.get("/my-events", response_model=MyEventsOut)
def my_events(
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db),
):
    """Events the user created and events they are attending."""
    return event_service.list_my_events(db, user_id)


@router.post("/{event_id}", response_model=RSVPOut, responses=REJECTIONS)
def join_event(
    event_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """RSVP to an event."""
    _require_user(db, user_id)
    event = controller.join(event_id, user_id)
    return {"message": "Successfully RSVP'd to event", "event": event}


@router.delete("/{event_id}", response_model=RSVPOut, responses=REJECTIONS)
def leave_event(
    event_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """Cancel an RSVP."""
    _require_user(db, user_id)
    event = controller.leave(event_id, user_id)
    return {"message": "RSVP cancelled successfully", "event": event}

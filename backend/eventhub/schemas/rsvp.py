"""Pydantic schemas for RSVP responses."""
from pydantic import BaseModel

from eventhub.schemas.event import EventOut


class RSVPOut(BaseModel):
    message: str
    event: EventOut


class ErrorOut(BaseModel):
    detail: str
    reason: str

"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from eventhub.models.event import EventCategory
from eventhub.timeutils import to_utc


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    date: datetime
    location: str = Field(min_length=1, max_length=255)
    category: EventCategory = EventCategory.other
    capacity: int = Field(ge=1)
    image: str = ""
    creator_id: str

    model_config = {"str_strip_whitespace": True}


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    date: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[EventCategory] = None
    capacity: Optional[int] = Field(None, ge=1)
    image: Optional[str] = None
    version: int  # required for optimistic locking

    model_config = {"str_strip_whitespace": True}

    @field_validator("title", "description", "date", "location", "category", "capacity", "image")
    @classmethod
    def _not_null(cls, value):
        # omit a field to leave it unchanged; null is not a value for it
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class EventOut(BaseModel):
    event_id: str
    title: str
    description: str
    date: datetime
    location: str
    category: EventCategory
    capacity: int
    image: str
    creator_id: str
    attendee_ids: list[str] = []
    attendee_count: int
    spots_left: int
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("date", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value)


class MyEventsOut(BaseModel):
    created: list[EventOut]
    attending: list[EventOut]

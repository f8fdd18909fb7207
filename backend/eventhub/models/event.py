"""Event ORM model.

`attendee_count` mirrors the number of `event_attendees` rows and is only
changed in the same transaction as those rows. The check constraints keep
the store itself from ever holding more attendees than seats.
"""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey, CheckConstraint, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from eventhub.database import Base


class EventCategory(str, enum.Enum):
    technology = "Technology"
    business = "Business"
    arts = "Arts"
    sports = "Sports"
    education = "Education"
    food_and_drink = "Food & Drink"
    music = "Music"
    networking = "Networking"
    other = "Other"


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_events_capacity_positive"),
        CheckConstraint(
            "attendee_count >= 0 AND attendee_count <= capacity",
            name="ck_events_attendance_within_capacity",
        ),
    )

    event_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    location = Column(String(255), nullable=False)
    category = Column(
        SAEnum(EventCategory, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
        default=EventCategory.other,
        index=True,
    )
    capacity = Column(Integer, nullable=False)
    image = Column(String(500), nullable=False, default="")
    creator_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    attendee_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    attendees = relationship(
        "EventAttendee",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="EventAttendee.joined_at",
    )

    @property
    def attendee_ids(self) -> list[str]:
        return [a.user_id for a in self.attendees]

    @property
    def spots_left(self) -> int:
        return max(self.capacity - self.attendee_count, 0)

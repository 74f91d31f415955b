"""
Participant model for event registrations.

A Participant links an external user to an event with a registration status.
Rows are never physically removed by participant operations: leaving an
event is a transition to CANCELLED, which preserves history.

Design Rationale:
- REGISTERED and CONFIRMED form the active roster counted against capacity
- WAITLIST entries are served FIFO by (created_at, id)
- Check-in moves a participant to ATTENDED and stamps checked_in_at
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    ForeignKey, Index
)
from sqlalchemy.orm import relationship

from eventplan.models import Base
from eventplan.models.mixins import GuidMixin


class ParticipantStatus(enum.Enum):
    """Registration status of a participant."""
    REGISTERED = "REGISTERED"
    WAITLIST = "WAITLIST"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    ATTENDED = "ATTENDED"


class ParticipantRole(enum.Enum):
    """Role of a participant at an event."""
    ATTENDEE = "ATTENDEE"
    SPEAKER = "SPEAKER"
    ORGANIZER = "ORGANIZER"
    HOST = "HOST"


# Statuses that occupy a seat
ACTIVE_STATUSES = (ParticipantStatus.REGISTERED.value, ParticipantStatus.CONFIRMED.value)


class Participant(Base, GuidMixin):
    """
    Event participant model.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (par_xxx, inherited from GuidMixin)
        event_id: FK to events (CASCADE on delete)
        user_id: External user identity
        user_name: Display name
        email: Optional contact address
        status: Registration status
        role: Participant role
        notes: Free-form notes
        checked_in: Whether the participant checked in
        checked_in_at: Check-in timestamp
        created_at: Creation timestamp (waitlist ordering key)
        updated_at: Last update timestamp

    Indexes:
        - (event_id, status, created_at) for roster counts and FIFO waitlist reads
    """

    __tablename__ = "participants"

    GUID_PREFIX = "par"

    id = Column(Integer, primary_key=True, autoincrement=True)

    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    user_id = Column(String(255), nullable=False, index=True)
    user_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(String(20), default=ParticipantStatus.REGISTERED.value, nullable=False)
    role = Column(String(20), default=ParticipantRole.ATTENDEE.value, nullable=False)

    checked_in = Column(Boolean, default=False, nullable=False)
    checked_in_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    event = relationship("Event", back_populates="participants")

    __table_args__ = (
        Index("idx_participants_event_status_created", "event_id", "status", "created_at"),
    )

    @property
    def status_enum(self) -> ParticipantStatus:
        return ParticipantStatus(self.status)

    @property
    def is_active(self) -> bool:
        """True when the participant occupies a seat."""
        return self.status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Participant("
            f"id={self.id}, "
            f"event_id={self.event_id}, "
            f"user_id='{self.user_id}', "
            f"status={self.status}"
            f")>"
        )

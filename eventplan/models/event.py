"""
Event model for tenant-owned events.

Events are either standalone, recurring templates, or leaf occurrences
materialized from a template's recurrence rule.

Design Rationale:
- A template carries the recurrence rule and is_recurring=True
- Occurrences point at their template via parent_event_id and never recur
- Times are stored as naive UTC; timezone is an opaque display tag
- max_participants NULL means unlimited capacity
"""

import enum
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Numeric, JSON,
    ForeignKey, Index
)
from sqlalchemy.orm import relationship

from eventplan.models import Base
from eventplan.models.mixins import GuidMixin


class EventStatus(enum.Enum):
    """Event lifecycle status."""
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Allowed guarded transitions; COMPLETED and CANCELLED are terminal
EVENT_TRANSITIONS = {
    EventStatus.DRAFT: {EventStatus.PUBLISHED, EventStatus.CANCELLED},
    EventStatus.PUBLISHED: {EventStatus.COMPLETED, EventStatus.CANCELLED},
    EventStatus.COMPLETED: set(),
    EventStatus.CANCELLED: set(),
}


class Event(Base, GuidMixin):
    """
    Event model.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (evt_xxx, inherited from GuidMixin)
        client_id: Owning client (tenant)

        Core Fields:
            title, description: Display text
            author_id, author_name, author_email: External author identity
            event_type: Free-form type label
            cover_image_url: Optional image
            tags: JSON list of strings
            category_id: Optional FK to Category

        Time Fields:
            start_time: Start instant (naive UTC)
            end_time: Optional end instant (naive UTC)
            timezone: Opaque timezone tag, never interpreted

        Location Fields:
            location_name, location_address, location_url, is_online

        Registration Fields:
            max_participants: Capacity (NULL = unlimited)
            is_public: Visibility flag
            price, currency: Optional ticket price

        Recurrence Fields:
            recurrence_rule: RRULE text (templates only)
            recurrence_end_date: Optional hard end bound
            recurrence_count: Optional occurrence count bound
            is_recurring: True only for templates owning a rule
            parent_event_id: FK to the template (occurrences only)

        Status:
            status: DRAFT, PUBLISHED, CANCELLED or COMPLETED

        Timestamps:
            created_at, updated_at

    Relationships:
        client: Owning client (many-to-one)
        category: Event category (many-to-one, SET NULL on delete)
        participants: Registrations (one-to-many, CASCADE on delete)
        parent_event: Template of an occurrence (many-to-one)
        child_events: Occurrences of a template (one-to-many)
    """

    __tablename__ = "events"

    GUID_PREFIX = "evt"

    id = Column(Integer, primary_key=True, autoincrement=True)

    client_id = Column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Core fields
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    author_id = Column(String(255), nullable=True)
    author_name = Column(String(255), nullable=True)
    author_email = Column(String(255), nullable=True)
    event_type = Column(String(100), nullable=True)
    cover_image_url = Column(String(1024), nullable=True)
    tags = Column(JSON, nullable=True)

    category_id = Column(
        Integer,
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Time fields
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=True)
    timezone = Column(String(64), nullable=True)

    # Location
    location_name = Column(String(255), nullable=True)
    location_address = Column(String(512), nullable=True)
    location_url = Column(String(1024), nullable=True)
    is_online = Column(Boolean, default=False, nullable=False)

    # Registration
    max_participants = Column(Integer, nullable=True)  # NULL = unlimited
    is_public = Column(Boolean, default=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=True)

    # Status
    status = Column(String(20), default=EventStatus.DRAFT.value, nullable=False, index=True)

    # Recurrence
    recurrence_rule = Column(Text, nullable=True)
    recurrence_end_date = Column(DateTime, nullable=True)
    recurrence_count = Column(Integer, nullable=True)
    is_recurring = Column(Boolean, default=False, nullable=False)
    parent_event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    # Relationships
    client = relationship("Client", back_populates="events")
    category = relationship("Category", back_populates="events")
    participants = relationship(
        "Participant",
        back_populates="event",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    parent_event = relationship(
        "Event",
        remote_side=[id],
        foreign_keys=[parent_event_id],
        back_populates="child_events",
    )
    child_events = relationship(
        "Event",
        foreign_keys=[parent_event_id],
        back_populates="parent_event",
        order_by="Event.start_time",
    )

    __table_args__ = (
        Index("idx_events_client_start", "client_id", "start_time"),
        Index("idx_events_parent_start", "parent_event_id", "start_time"),
    )

    @property
    def status_enum(self) -> EventStatus:
        """Get status as an EventStatus member."""
        return EventStatus(self.status)

    @property
    def is_occurrence(self) -> bool:
        """True for leaf occurrences generated from a template."""
        return self.parent_event_id is not None

    @property
    def has_capacity_limit(self) -> bool:
        return self.max_participants is not None

    @property
    def duration(self) -> Optional[timedelta]:
        """Length of the event, or None when no end time is set."""
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Event("
            f"id={self.id}, "
            f"title='{self.title}', "
            f"start={self.start_time}, "
            f"status={self.status}"
            f")>"
        )

    def __str__(self) -> str:
        """Human-readable string representation."""
        return f"{self.title} - {self.start_time}"

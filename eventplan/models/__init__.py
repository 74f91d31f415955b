"""
SQLAlchemy models for the EventPlan core.

This module provides the declarative base class and imports all models
to ensure they are registered with SQLAlchemy's metadata.
"""

from sqlalchemy.orm import declarative_base

# All models inherit from this Base class
Base = declarative_base()


# Import all models here so they are registered with Base.metadata
from eventplan.models.client import Client
from eventplan.models.category import Category
from eventplan.models.event import Event, EventStatus, EVENT_TRANSITIONS
from eventplan.models.participant import (
    Participant,
    ParticipantStatus,
    ParticipantRole,
    ACTIVE_STATUSES,
)

__all__ = [
    "Base",
    "Client",
    "Category",
    "Event",
    "EventStatus",
    "EVENT_TRANSITIONS",
    "Participant",
    "ParticipantStatus",
    "ParticipantRole",
    "ACTIVE_STATUSES",
]

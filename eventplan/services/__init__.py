"""
Service layer for business logic.

This module exports all service classes for use by the request layer.
"""

from eventplan.services.exceptions import (
    ServiceError,
    NotFoundError,
    EventNotFound,
    ParticipantNotFound,
    ConflictError,
    ValidationError,
    InvalidRecurrenceRule,
    CapacityRace,
)
from eventplan.services.guid import GuidService
from eventplan.services.recurrence import RecurrenceExpander
from eventplan.services.instance_materializer import InstanceMaterializer, MaterializationResult
from eventplan.services.capacity_service import (
    CapacityController,
    EventLockRegistry,
    JoinResult,
    event_locks,
)
from eventplan.services.waitlist_service import WaitlistPromoter
from eventplan.services.webhook_service import WebhookService, WebhookEventType, get_webhook_service
from eventplan.services.event_service import EventService, EventCreationResult
from eventplan.services.participant_service import ParticipantService
from eventplan.services.cleanup_service import CleanupService, SweepStats
from eventplan.services.scheduler import DailySweepScheduler
from eventplan.services.client_service import ClientService
from eventplan.services.category_service import CategoryService

__all__ = [
    "ServiceError",
    "NotFoundError",
    "EventNotFound",
    "ParticipantNotFound",
    "ConflictError",
    "ValidationError",
    "InvalidRecurrenceRule",
    "CapacityRace",
    "GuidService",
    # Recurrence
    "RecurrenceExpander",
    "InstanceMaterializer",
    "MaterializationResult",
    # Registration
    "CapacityController",
    "JoinResult",
    "EventLockRegistry",
    "event_locks",
    "WaitlistPromoter",
    "ParticipantService",
    # Events
    "EventService",
    "EventCreationResult",
    # Sweep
    "CleanupService",
    "SweepStats",
    "DailySweepScheduler",
    # Collaborators
    "WebhookService",
    "WebhookEventType",
    "get_webhook_service",
    "ClientService",
    "CategoryService",
]

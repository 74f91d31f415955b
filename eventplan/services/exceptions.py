"""
Custom exceptions for service layer.

Provides specific exception types for business logic errors that the
request layer translates to rejected operations or warnings.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for service layer errors."""
    pass


class NotFoundError(ServiceError):
    """Raised when a requested resource is not found (or belongs to another client)."""

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class EventNotFound(NotFoundError):
    """Raised when an event does not exist for the calling client."""

    def __init__(self, identifier: Any):
        super().__init__("Event", identifier)


class ParticipantNotFound(NotFoundError):
    """Raised when a participant does not exist on the given event."""

    def __init__(self, identifier: Any):
        super().__init__("Participant", identifier)


class ConflictError(ServiceError):
    """Raised when an operation conflicts with existing state."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ServiceError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class InvalidRecurrenceRule(ServiceError):
    """Raised when recurrence rule text cannot be parsed.

    Non-fatal during event creation: the template is still persisted and the
    condition is reported as a warning on the creation result.
    """

    def __init__(self, rule: str, reason: str):
        self.rule = rule
        self.reason = reason
        self.message = f"Invalid recurrence rule '{rule}': {reason}"
        super().__init__(self.message)


class CapacityRace(ServiceError):
    """Raised when a seat claim loses to a concurrent registration.

    Handled inside the capacity controller, which assigns the participant to
    the waitlist instead; it never reaches end users as an error.
    """

    def __init__(self, event_id: int, capacity: int, active_count: int):
        self.event_id = event_id
        self.capacity = capacity
        self.active_count = active_count
        super().__init__(
            f"Event {event_id} roster at {active_count}/{capacity} after seat claim"
        )

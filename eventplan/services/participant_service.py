"""
Participant service for event registrations.

Provides business logic for joining, leaving, status updates, check-in and
roster listings.

Design:
- Every roster mutation runs under the event's lock from capacity_service,
  so counts and promotions observe a consistent roster
- Participants are never deleted: leaving an event is a transition to CANCELLED
- Every move out of the active roster (REGISTERED / CONFIRMED) promotes at
  most one waitlisted participant into the freed seat; this includes
  check-in, since ATTENDED no longer holds a seat
- Webhooks are dispatched after the lock is released
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from eventplan.models import (
    ACTIVE_STATUSES,
    Event,
    Participant,
    ParticipantRole,
    ParticipantStatus,
)
from eventplan.services.capacity_service import (
    CapacityController,
    EventLockRegistry,
    event_locks,
    get_event_for_client,
)
from eventplan.services.exceptions import (
    ConflictError,
    ParticipantNotFound,
    ValidationError,
)
from eventplan.services.guid import GuidService
from eventplan.services.waitlist_service import WaitlistPromoter
from eventplan.services.webhook_service import (
    WebhookEventType,
    WebhookService,
    format_participant_for_webhook,
    get_webhook_service,
)
from eventplan.utils.logging_config import get_logger


logger = get_logger("services")


class ParticipantService:
    """
    Service for managing event participants.

    Usage:
        >>> service = ParticipantService(db_session)
        >>> participant = service.join(event.guid, client.id, "u-1", "Ada")
        >>> service.remove_participant(event.guid, client.id, "u-1")
        1
    """

    def __init__(
        self,
        db: Session,
        webhooks: Optional[WebhookService] = None,
        locks: Optional[EventLockRegistry] = None,
    ):
        """
        Initialize participant service.

        Args:
            db: SQLAlchemy database session
            webhooks: Webhook dispatcher (default: process-wide service)
            locks: Per-event lock registry (default: process-wide registry)
        """
        self.db = db
        self.webhooks = webhooks or get_webhook_service()
        self.locks = locks or event_locks
        self.capacity = CapacityController(db, self.locks)
        self.promoter = WaitlistPromoter(db)

    def join(
        self,
        event_guid: str,
        client_id: int,
        user_id: str,
        user_name: str,
        email: Optional[str] = None,
        role: str = ParticipantRole.ATTENDEE.value,
        notes: Optional[str] = None,
    ) -> Participant:
        """
        Register a user for an event (REGISTERED, or WAITLIST when full).

        Raises:
            EventNotFound: If the event is missing or owned by another client
            ConflictError: If the user is already registered
            ValidationError: If role is unknown
        """
        result = self.capacity.register(
            event_guid,
            client_id,
            user_id,
            user_name,
            email=email,
            role=role,
            notes=notes,
        )
        self._notify_promoted(result.promoted)
        self._notify(result.participant, WebhookEventType.PARTICIPANT_JOINED)
        return result.participant

    def remove_participant(self, event_guid: str, client_id: int, user_id: str) -> int:
        """
        Cancel every non-cancelled participation of a user on an event.

        One waitlisted participant is promoted per departed active participant.

        Args:
            event_guid: Event GUID (evt_xxx)
            client_id: Client id for tenant isolation
            user_id: External user identity

        Returns:
            Number of participations cancelled

        Raises:
            EventNotFound: If the event is missing or owned by another client
        """
        event = get_event_for_client(self.db, event_guid, client_id)
        promoted: List[Participant] = []

        with self.locks.hold(event.id):
            try:
                self.capacity.lock_event_row(event.id)

                departing = (
                    self.db.query(Participant)
                    .filter(
                        Participant.event_id == event.id,
                        Participant.user_id == user_id,
                        Participant.status != ParticipantStatus.CANCELLED.value,
                    )
                    .all()
                )

                freed_seats = 0
                for participant in departing:
                    if participant.status in ACTIVE_STATUSES:
                        freed_seats += 1
                    participant.status = ParticipantStatus.CANCELLED.value
                self.db.flush()

                for _ in range(freed_seats):
                    head = self.promoter.promote(event.id)
                    if head is None:
                        break
                    promoted.append(head)

                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "Removed participant from event",
            extra={
                "event_guid": event_guid,
                "user_id": user_id,
                "cancelled": len(departing),
                "promoted": len(promoted),
            },
        )

        for participant in departing:
            self._notify(participant, WebhookEventType.PARTICIPANT_REMOVED)
        self._notify_promoted(promoted)
        return len(departing)

    def update_participant_status(
        self,
        participant_guid: str,
        event_guid: str,
        client_id: int,
        status: str,
    ) -> Participant:
        """
        Change a participant's status.

        Leaving the active roster frees a seat for the head of the waitlist;
        a participant moved to the waitlist is not promoted straight back.
        Entering the active roster from outside it requires a free seat.

        Args:
            participant_guid: Participant GUID (par_xxx)
            event_guid: Event GUID (evt_xxx)
            client_id: Client id for tenant isolation
            status: New status

        Returns:
            Updated Participant

        Raises:
            EventNotFound: If the event is missing or owned by another client
            ParticipantNotFound: If the participant is not on this event
            ValidationError: If status is unknown
            ConflictError: If the event has no free seat for the participant
        """
        try:
            new_status = ParticipantStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid participant status: {status}", field="status")

        event = get_event_for_client(self.db, event_guid, client_id)
        promoted: List[Participant] = []

        with self.locks.hold(event.id):
            try:
                event = self.capacity.lock_event_row(event.id)
                participant = self._get_participant(participant_guid, event)
                previous_status = participant.status

                was_active = previous_status in ACTIVE_STATUSES
                becomes_active = new_status.value in ACTIVE_STATUSES

                if becomes_active and not was_active and not self.capacity.has_free_seat(event):
                    raise ConflictError(
                        f"Event is full ({event.max_participants} participants)"
                    )

                participant.status = new_status.value
                self.db.flush()

                if was_active and not becomes_active:
                    head = self.promoter.promote(event.id, skip_id=participant.id)
                    if head is not None:
                        promoted.append(head)

                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(participant)

        logger.info(
            "Updated participant status",
            extra={
                "participant_guid": participant_guid,
                "previous_status": previous_status,
                "status": participant.status,
                "promoted": [p.guid for p in promoted],
            },
        )

        self._notify(
            participant,
            WebhookEventType.PARTICIPANT_STATUS_CHANGED,
            previous_status=previous_status,
        )
        self._notify_promoted(promoted)
        return participant

    def check_in(self, participant_guid: str, event_guid: str, client_id: int) -> Participant:
        """
        Check a participant in: ATTENDED with a check-in timestamp.

        A seated participant who checks in gives up the seat to the waitlist.

        Raises:
            EventNotFound: If the event is missing or owned by another client
            ParticipantNotFound: If the participant is not on this event
            ValidationError: If the participant is cancelled
        """
        event = get_event_for_client(self.db, event_guid, client_id)
        promoted: List[Participant] = []

        with self.locks.hold(event.id):
            try:
                event = self.capacity.lock_event_row(event.id)
                participant = self._get_participant(participant_guid, event)
                if participant.status == ParticipantStatus.CANCELLED.value:
                    raise ValidationError(
                        "Cancelled participants cannot check in", field="status"
                    )

                was_active = participant.status in ACTIVE_STATUSES
                participant.checked_in = True
                participant.checked_in_at = datetime.utcnow()
                participant.status = ParticipantStatus.ATTENDED.value
                self.db.flush()

                if was_active:
                    head = self.promoter.promote(event.id)
                    if head is not None:
                        promoted.append(head)

                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(participant)
        logger.info(
            "Participant checked in",
            extra={
                "participant_guid": participant_guid,
                "event_guid": event_guid,
                "promoted": [p.guid for p in promoted],
            },
        )
        self._notify(participant, WebhookEventType.PARTICIPANT_CHECKED_IN)
        self._notify_promoted(promoted)
        return participant

    def get_participant(self, participant_guid: str, event_guid: str, client_id: int) -> Participant:
        """Get a participant of a client's event."""
        event = get_event_for_client(self.db, event_guid, client_id)
        return self._get_participant(participant_guid, event)

    def list_participants(
        self,
        event_guid: str,
        client_id: int,
        status: Optional[str] = None,
    ) -> List[Participant]:
        """
        List an event's participants in registration order.

        Args:
            event_guid: Event GUID (evt_xxx)
            client_id: Client id for tenant isolation
            status: Optional status filter

        Returns:
            Participants ordered by (created_at, id)
        """
        event = get_event_for_client(self.db, event_guid, client_id)

        query = self.db.query(Participant).filter(Participant.event_id == event.id)
        if status:
            query = query.filter(Participant.status == status)
        return query.order_by(Participant.created_at.asc(), Participant.id.asc()).all()

    def list_waitlist(self, event_guid: str, client_id: int) -> List[Participant]:
        """Waitlisted participants in promotion order."""
        event = get_event_for_client(self.db, event_guid, client_id)
        return self.promoter.queue(event.id)

    def _get_participant(self, participant_guid: str, event: Event) -> Participant:
        """
        Resolve a participant GUID within an event.

        Raises:
            ParticipantNotFound: If the GUID is invalid or not on this event
        """
        if not GuidService.validate_guid(participant_guid, "par"):
            raise ParticipantNotFound(participant_guid)

        try:
            uuid_value = GuidService.parse_guid(participant_guid, "par")
        except ValueError:
            raise ParticipantNotFound(participant_guid)

        participant = (
            self.db.query(Participant)
            .filter(Participant.uuid == uuid_value, Participant.event_id == event.id)
            .first()
        )
        if not participant:
            raise ParticipantNotFound(participant_guid)
        return participant

    def _notify_promoted(self, promoted: List[Participant]) -> None:
        for participant in promoted:
            self._notify(
                participant,
                WebhookEventType.PARTICIPANT_STATUS_CHANGED,
                previous_status=ParticipantStatus.WAITLIST.value,
            )

    def _notify(
        self,
        participant: Participant,
        event_type: WebhookEventType,
        previous_status: Optional[str] = None,
    ) -> None:
        """Dispatch a webhook for a participant; never raises."""
        try:
            client = participant.event.client
            self.webhooks.dispatch(
                client.webhook_url,
                event_type,
                client.guid,
                format_participant_for_webhook(participant, previous_status=previous_status),
            )
        except Exception as e:
            logger.error(
                f"Webhook dispatch failed: {e}",
                extra={"participant_guid": participant.guid, "webhook_event": event_type.value},
            )

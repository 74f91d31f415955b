"""
Event service for managing tenant events and their lifecycle.

Provides business logic for creating, listing, retrieving and updating events,
and for the DRAFT -> PUBLISHED -> COMPLETED / CANCELLED state machine.

Design:
- A recurrence rule makes the new event a template; its occurrences are
  materialized once, synchronously, before create_event returns
- An unparsable rule never aborts creation: the template persists with no
  occurrences and the condition is returned as a structured warning
- Guarded transitions follow EVENT_TRANSITIONS; complete_event is the
  permissive exception (any status -> COMPLETED, idempotent)
- Raising or removing max_participants fills the new seats from the waitlist
- Webhooks are dispatched after the database work is committed; delivery
  problems never reach the caller
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from eventplan.models import (
    Category,
    Event,
    EventStatus,
    EVENT_TRANSITIONS,
    Participant,
    ParticipantStatus,
)
from eventplan.services.capacity_service import (
    CapacityController,
    EventLockRegistry,
    event_locks,
    get_event_for_client,
)
from eventplan.services.exceptions import (
    InvalidRecurrenceRule,
    ValidationError,
)
from eventplan.services.guid import GuidService
from eventplan.services.instance_materializer import InstanceMaterializer
from eventplan.services.recurrence import end_bound, to_naive_utc
from eventplan.services.waitlist_service import WaitlistPromoter
from eventplan.services.webhook_service import (
    WebhookEventType,
    WebhookService,
    format_event_for_webhook,
    format_participant_for_webhook,
    get_webhook_service,
)
from eventplan.utils.logging_config import get_logger


logger = get_logger("services")


# Descriptive fields accepted by create_event and update_event
DETAIL_FIELDS = frozenset({
    "description",
    "author_id",
    "author_name",
    "author_email",
    "event_type",
    "cover_image_url",
    "tags",
    "end_time",
    "timezone",
    "location_name",
    "location_address",
    "location_url",
    "is_online",
    "max_participants",
    "is_public",
    "price",
    "currency",
})

UPDATABLE_FIELDS = DETAIL_FIELDS | {"title", "start_time", "status", "category_guid"}

CREATABLE_STATUSES = (EventStatus.DRAFT.value, EventStatus.PUBLISHED.value)

# Webhook sent when a status update lands on the given status
STATUS_WEBHOOKS = {
    EventStatus.PUBLISHED: WebhookEventType.EVENT_PUBLISHED,
    EventStatus.CANCELLED: WebhookEventType.EVENT_CANCELLED,
    EventStatus.COMPLETED: WebhookEventType.EVENT_COMPLETED,
}


@dataclass
class EventCreationResult:
    """
    Outcome of create_event.

    Attributes:
        event: The created event (template when a rule was given)
        occurrences: Materialized occurrence events, in start order
        warnings: Non-fatal conditions, each {"code", "message", ...}
        errors: Occurrences that failed to persist
    """
    event: Event
    occurrences: List[Event] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


class EventService:
    """
    Service for managing events.

    Usage:
        >>> service = EventService(db_session)
        >>> result = service.create_event(
        ...     client_id=1,
        ...     title="Weekly sync",
        ...     start_time=datetime(2030, 1, 7, 9),
        ...     recurrence_rule="FREQ=WEEKLY",
        ...     recurrence_count=10,
        ... )
        >>> len(result.occurrences)
        10
    """

    def __init__(
        self,
        db: Session,
        webhooks: Optional[WebhookService] = None,
        materializer: Optional[InstanceMaterializer] = None,
        locks: Optional[EventLockRegistry] = None,
    ):
        """
        Initialize event service.

        Args:
            db: SQLAlchemy database session
            webhooks: Webhook dispatcher (default: process-wide service)
            materializer: Occurrence materializer (default: settings-configured)
            locks: Per-event lock registry (default: process-wide registry)
        """
        self.db = db
        self.webhooks = webhooks or get_webhook_service()
        self.materializer = materializer or InstanceMaterializer(db)
        self.locks = locks or event_locks
        self._capacity = CapacityController(db, self.locks)
        self._promoter = WaitlistPromoter(db)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_event(
        self,
        client_id: int,
        title: str,
        start_time: datetime,
        status: str = EventStatus.DRAFT.value,
        category_guid: Optional[str] = None,
        recurrence_rule: Optional[str] = None,
        recurrence_end_date: Union[date, datetime, None] = None,
        recurrence_count: Optional[int] = None,
        now: Optional[datetime] = None,
        **details: Any,
    ) -> EventCreationResult:
        """
        Create an event, materializing occurrences when a rule is given.

        Args:
            client_id: Owning client id
            title: Event title
            start_time: Start instant (aware values are converted to naive UTC)
            status: Initial status, DRAFT or PUBLISHED
            category_guid: Optional category GUID (cat_xxx)
            recurrence_rule: Optional RRULE text
            recurrence_end_date: Optional inclusive end bound for occurrences
            recurrence_count: Optional occurrence count bound
            now: Reference time for skipping past occurrences (default: utcnow)
            **details: Descriptive fields (see DETAIL_FIELDS)

        Returns:
            EventCreationResult

        Raises:
            ValidationError: If any field is invalid
        """
        unknown = set(details) - DETAIL_FIELDS
        if unknown:
            raise ValidationError(f"Unknown event fields: {sorted(unknown)}")

        if status not in CREATABLE_STATUSES:
            raise ValidationError(
                f"Events must be created as DRAFT or PUBLISHED, got: {status}",
                field="status",
            )
        if recurrence_count is not None and recurrence_count < 0:
            raise ValidationError(
                "recurrence_count cannot be negative", field="recurrence_count"
            )

        values = dict(details)
        values["title"] = title
        values["start_time"] = start_time
        self._validate_values(values)

        rule = recurrence_rule.strip() if recurrence_rule and recurrence_rule.strip() else None

        event = Event(
            client_id=client_id,
            status=status,
            category_id=(
                self._get_category(category_guid, client_id).id if category_guid else None
            ),
            recurrence_rule=rule,
            recurrence_end_date=end_bound(recurrence_end_date),
            recurrence_count=recurrence_count,
            is_recurring=rule is not None,
            **values,
        )

        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)

        logger.info(
            f"Created event: {event.guid} - {title}",
            extra={"client_id": client_id, "is_recurring": event.is_recurring},
        )

        result = EventCreationResult(event=event)

        if rule:
            try:
                materialized = self.materializer.materialize(event, now=now)
            except InvalidRecurrenceRule as e:
                logger.warning(
                    "Recurrence expansion skipped",
                    extra={"event_guid": event.guid, "rule": e.rule, "reason": e.reason},
                )
                result.warnings.append({
                    "code": "invalid_recurrence_rule",
                    "message": e.message,
                    "rule": e.rule,
                    "reason": e.reason,
                })
            else:
                result.occurrences = materialized.created
                result.errors = materialized.errors

        self._notify(event, WebhookEventType.EVENT_CREATED)
        return result

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_event(self, guid: str, client_id: int) -> Event:
        """
        Get an event by GUID.

        Raises:
            EventNotFound: If the event is missing or owned by another client
        """
        return get_event_for_client(self.db, guid, client_id)

    def list_events(
        self,
        client_id: int,
        status: Optional[str] = None,
        event_type: Optional[str] = None,
        category_guid: Optional[str] = None,
        is_online: Optional[bool] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        include_occurrences: bool = True,
    ) -> List[Event]:
        """
        List a client's events with optional filtering.

        Args:
            client_id: Client id for tenant isolation
            status: Filter by status
            event_type: Filter by event type label
            category_guid: Filter by category GUID
            is_online: Filter by online flag
            from_date: Earliest start time (inclusive)
            to_date: Latest start time (inclusive)
            include_occurrences: If False, only templates and standalone events

        Returns:
            List of Event instances ordered by start time
        """
        query = (
            self.db.query(Event)
            .options(joinedload(Event.category))
            .filter(Event.client_id == client_id)
        )

        if status:
            query = query.filter(Event.status == status)
        if event_type:
            query = query.filter(Event.event_type == event_type)
        if category_guid:
            category = self._get_category(category_guid, client_id)
            query = query.filter(Event.category_id == category.id)
        if is_online is not None:
            query = query.filter(Event.is_online.is_(is_online))
        if from_date:
            query = query.filter(Event.start_time >= to_naive_utc(from_date))
        if to_date:
            query = query.filter(Event.start_time <= to_naive_utc(to_date))
        if not include_occurrences:
            query = query.filter(Event.parent_event_id.is_(None))

        return query.order_by(Event.start_time.asc(), Event.id.asc()).all()

    def list_occurrences(self, guid: str, client_id: int) -> List[Event]:
        """Occurrences materialized from a template, in start order."""
        template = self.get_event(guid, client_id)
        return (
            self.db.query(Event)
            .filter(Event.parent_event_id == template.id)
            .order_by(Event.start_time.asc())
            .all()
        )

    def get_event_stats(self, guid: str, client_id: int) -> Dict[str, Any]:
        """
        Get participant statistics for an event.

        Returns:
            Dictionary with:
            - total_participants: All participant rows, any status
            - registered / confirmed / waitlist / cancelled / attended: per-status counts
            - checked_in: Participants who checked in
            - available_spots: Free seats, or None for unlimited events
        """
        event = self.get_event(guid, client_id)

        rows = (
            self.db.query(Participant.status, func.count(Participant.id))
            .filter(Participant.event_id == event.id)
            .group_by(Participant.status)
            .all()
        )
        by_status = {status: count for status, count in rows}

        checked_in = (
            self.db.query(func.count(Participant.id))
            .filter(Participant.event_id == event.id, Participant.checked_in.is_(True))
            .scalar()
        )

        stats = {
            "total_participants": sum(by_status.values()),
            "checked_in": checked_in or 0,
            "available_spots": self._capacity.available_spots(event),
        }
        for status in ParticipantStatus:
            stats[status.value.lower()] = by_status.get(status.value, 0)
        return stats

    # -------------------------------------------------------------------------
    # Updates and transitions
    # -------------------------------------------------------------------------

    def update_event(self, guid: str, client_id: int, **updates: Any) -> Event:
        """
        Update an event.

        Args:
            guid: Event GUID (evt_xxx)
            client_id: Client id for tenant isolation
            **updates: Fields to update (see UPDATABLE_FIELDS)

        Returns:
            Updated Event instance

        Raises:
            EventNotFound: If the event is missing or owned by another client
            ValidationError: If a field is unknown or invalid, or the status
                change is not an allowed transition
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {sorted(unknown)}")

        event = self.get_event(guid, client_id)

        if "category_guid" in updates:
            category_guid = updates.pop("category_guid")
            updates["category_id"] = (
                self._get_category(category_guid, client_id).id if category_guid else None
            )

        new_status = updates.pop("status", None)
        previous_status = event.status_enum
        if new_status is not None:
            self._check_transition(previous_status, new_status)

        merged = {
            "title": updates.get("title", event.title),
            "start_time": updates.get("start_time", event.start_time),
            "end_time": updates.get("end_time", event.end_time),
            "max_participants": updates.get("max_participants", event.max_participants),
        }
        self._validate_values(merged)
        for key in ("title", "start_time", "end_time"):
            if updates.get(key) is not None:
                updates[key] = merged[key]

        promoted: List[Participant] = []

        with self.locks.hold(event.id):
            try:
                event = self._capacity.lock_event_row(event.id)

                if "max_participants" in updates and updates["max_participants"] is not None:
                    active = self._capacity.active_count(event.id)
                    if updates["max_participants"] < active:
                        raise ValidationError(
                            f"max_participants cannot be below the {active} active participants",
                            field="max_participants",
                        )

                for key, value in updates.items():
                    setattr(event, key, value)
                if new_status is not None:
                    event.status = new_status
                event.updated_at = datetime.utcnow()
                self.db.flush()

                if "max_participants" in updates:
                    promoted = self._promoter.fill_open_seats(event.id)

                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(event)

        logger.info(
            f"Updated event: {event.guid}",
            extra={
                "client_id": client_id,
                "fields": sorted(updates) + (["status"] if new_status else []),
                "promoted": len(promoted),
            },
        )

        if new_status is not None and EventStatus(new_status) != previous_status:
            self._notify(event, STATUS_WEBHOOKS[EventStatus(new_status)])
        else:
            self._notify(event, WebhookEventType.EVENT_UPDATED)
        for participant in promoted:
            self._notify_participant(
                participant,
                WebhookEventType.PARTICIPANT_STATUS_CHANGED,
                previous_status=ParticipantStatus.WAITLIST.value,
            )
        return event

    def publish_event(self, guid: str, client_id: int) -> Event:
        """Transition DRAFT -> PUBLISHED."""
        return self._transition(guid, client_id, EventStatus.PUBLISHED)

    def cancel_event(self, guid: str, client_id: int) -> Event:
        """Transition DRAFT or PUBLISHED -> CANCELLED."""
        return self._transition(guid, client_id, EventStatus.CANCELLED)

    def complete_event(self, guid: str, client_id: int) -> Event:
        """
        Mark an event COMPLETED.

        Idempotent and unguarded: any status, CANCELLED included, becomes
        COMPLETED. Completing an already completed event is a no-op.

        Raises:
            EventNotFound: If the event is missing or owned by another client
        """
        event = self.get_event(guid, client_id)

        if event.status == EventStatus.COMPLETED.value:
            logger.debug("Event already completed", extra={"event_guid": guid})
            return event

        previous_status = event.status
        event.status = EventStatus.COMPLETED.value
        event.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(event)

        logger.info(
            f"Completed event: {event.guid}",
            extra={"client_id": client_id, "previous_status": previous_status},
        )
        self._notify(event, WebhookEventType.EVENT_COMPLETED)
        return event

    def _transition(self, guid: str, client_id: int, target: EventStatus) -> Event:
        event = self.get_event(guid, client_id)
        self._check_transition(event.status_enum, target.value)

        event.status = target.value
        event.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(event)

        logger.info(
            f"Event {event.guid} -> {target.value}",
            extra={"client_id": client_id},
        )
        self._notify(event, STATUS_WEBHOOKS[target])
        return event

    @staticmethod
    def _check_transition(current: EventStatus, target: str) -> None:
        """
        Validate a guarded status transition.

        Raises:
            ValidationError: If target is not a status or not reachable from current
        """
        try:
            target_status = EventStatus(target)
        except ValueError:
            raise ValidationError(f"Invalid status: {target}", field="status")

        if target_status == current:
            return
        if target_status not in EVENT_TRANSITIONS[current]:
            raise ValidationError(
                f"Cannot transition event from {current.value} to {target_status.value}",
                field="status",
            )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _validate_values(values: Dict[str, Any]) -> None:
        """Validate and normalize title, times and capacity in place."""
        title = values.get("title")
        if not title or not title.strip():
            raise ValidationError("Title cannot be empty", field="title")
        values["title"] = title.strip()

        start = values.get("start_time")
        if start is None:
            raise ValidationError("start_time is required", field="start_time")
        values["start_time"] = to_naive_utc(start)

        end = values.get("end_time")
        if end is not None:
            values["end_time"] = to_naive_utc(end)
            if values["end_time"] < values["start_time"]:
                raise ValidationError("end_time cannot be before start_time", field="end_time")

        capacity = values.get("max_participants")
        if capacity is not None and capacity < 0:
            raise ValidationError(
                "max_participants cannot be negative", field="max_participants"
            )

    def _get_category(self, guid: str, client_id: int) -> Category:
        """
        Get a client's category by GUID.

        Raises:
            ValidationError: If the GUID is invalid or the category is not found
        """
        if not GuidService.validate_guid(guid, "cat"):
            raise ValidationError(f"Invalid category GUID: {guid}", field="category_guid")

        try:
            uuid_value = GuidService.parse_guid(guid, "cat")
        except ValueError:
            raise ValidationError(f"Invalid category GUID: {guid}", field="category_guid")

        category = (
            self.db.query(Category)
            .filter(Category.uuid == uuid_value, Category.client_id == client_id)
            .first()
        )
        if not category:
            raise ValidationError(f"Category not found: {guid}", field="category_guid")
        return category

    def _notify(self, event: Event, event_type: WebhookEventType) -> None:
        """Dispatch a webhook for an event; never raises."""
        try:
            client = event.client
            self.webhooks.dispatch(
                client.webhook_url,
                event_type,
                client.guid,
                format_event_for_webhook(event),
            )
        except Exception as e:
            logger.error(
                f"Webhook dispatch failed: {e}",
                extra={"event_guid": event.guid, "webhook_event": event_type.value},
            )

    def _notify_participant(
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

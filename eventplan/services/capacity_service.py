"""
Capacity control for event registration.

Decides whether a join request gets a seat (REGISTERED) or a place on the
waitlist (WAITLIST), keeping the active roster (REGISTERED + CONFIRMED) at or
below the event's max_participants.

Concurrency:
- The read-count-then-insert sequence runs inside a per-event critical section
- In-process: an EventLockRegistry lock keyed by event id
- Across processes: SELECT ... FOR UPDATE on the event row (PostgreSQL; SQLite
  ignores it and relies on the in-process lock)
- After inserting a REGISTERED row the roster is re-counted before commit; an
  overbooked roster raises CapacityRace internally and the row is demoted to
  WAITLIST
- Different events never share a lock
- Locks live only while someone holds or waits on them

Waitlist ordering:
- Before a newcomer is seated, free seats go to the waitlist in FIFO order;
  the newcomer only gets a seat left over after the waitlist is drained
"""

import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from eventplan.models import (
    Event,
    Participant,
    ParticipantStatus,
    ParticipantRole,
    ACTIVE_STATUSES,
)
from eventplan.services.exceptions import (
    CapacityRace,
    ConflictError,
    EventNotFound,
    ValidationError,
)
from eventplan.services.guid import GuidService
from eventplan.utils.logging_config import get_logger


logger = get_logger("services")


class EventLockRegistry:
    """
    Per-event mutual exclusion for roster mutations.

    One lock per event id; locks for different events are independent.
    Locks are weakly referenced, so an event nobody is working on holds no
    entry.

    Usage:
        >>> with event_locks.hold(event.id):
        ...     # count roster, insert participant, commit
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[int, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def get(self, event_id: int) -> threading.Lock:
        """Get (creating if needed) the lock for an event."""
        with self._guard:
            lock = self._locks.get(event_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[event_id] = lock
            return lock

    @contextmanager
    def hold(self, event_id: int) -> Iterator[None]:
        """Hold the event's lock for the duration of the block."""
        lock = self.get(event_id)
        with lock:
            yield

    def __contains__(self, event_id: int) -> bool:
        with self._guard:
            return event_id in self._locks

    def discard(self, event_id: int) -> None:
        """Forget an event's lock (after the event is deleted)."""
        with self._guard:
            self._locks.pop(event_id, None)


# Process-wide registry shared by all services
event_locks = EventLockRegistry()


def get_event_for_client(db: Session, event_guid: str, client_id: int) -> Event:
    """
    Resolve an event GUID within a client's tenancy.

    Raises:
        EventNotFound: If the GUID is malformed, unknown, or owned by another client
    """
    if not GuidService.validate_guid(event_guid, "evt"):
        raise EventNotFound(event_guid)

    try:
        uuid_value = GuidService.parse_guid(event_guid, "evt")
    except ValueError:
        raise EventNotFound(event_guid)

    event = (
        db.query(Event)
        .filter(Event.uuid == uuid_value, Event.client_id == client_id)
        .first()
    )
    if not event:
        raise EventNotFound(event_guid)
    return event


@dataclass
class JoinResult:
    """Outcome of a join: the new participant and anyone promoted ahead of them."""

    participant: Participant
    promoted: List[Participant] = field(default_factory=list)


class CapacityController:
    """
    Assigns REGISTERED or WAITLIST to join requests.

    Usage:
        >>> controller = CapacityController(db_session)
        >>> participant = controller.join(
        ...     event_guid="evt_01hgw...",
        ...     client_id=1,
        ...     user_id="u-42",
        ...     user_name="Ada",
        ... )
        >>> participant.status
        'REGISTERED'
    """

    def __init__(self, db: Session, locks: Optional[EventLockRegistry] = None):
        """
        Initialize capacity controller.

        Args:
            db: SQLAlchemy database session
            locks: Lock registry (default: process-wide registry)
        """
        self.db = db
        self.locks = locks or event_locks
        self._promoter = None

    @property
    def promoter(self):
        """WaitlistPromoter bound to this session."""
        if self._promoter is None:
            # waitlist_service imports this module
            from eventplan.services.waitlist_service import WaitlistPromoter

            self._promoter = WaitlistPromoter(self.db)
        return self._promoter

    def active_count(self, event_id: int) -> int:
        """Count participants occupying a seat (REGISTERED or CONFIRMED)."""
        return (
            self.db.query(func.count(Participant.id))
            .filter(
                Participant.event_id == event_id,
                Participant.status.in_(ACTIVE_STATUSES),
            )
            .scalar()
        ) or 0

    def available_spots(self, event: Event) -> Optional[int]:
        """Free seats, or None for unlimited events."""
        if event.max_participants is None:
            return None
        return max(0, event.max_participants - self.active_count(event.id))

    def has_free_seat(self, event: Event) -> bool:
        """True when the event is unlimited or below capacity."""
        if event.max_participants is None:
            return True
        return self.active_count(event.id) < event.max_participants

    def lock_event_row(self, event_id: int) -> Event:
        """
        Re-read the event row with a row-level lock.

        Must be called inside the event's registry lock. The row lock is held
        until the surrounding transaction commits or rolls back.
        """
        return (
            self.db.query(Event)
            .filter(Event.id == event_id)
            .with_for_update()
            .populate_existing()
            .one()
        )

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
        Register a user for an event, or waitlist them when it is full.

        Args:
            event_guid: Event GUID (evt_xxx)
            client_id: Caller's client id (tenant isolation)
            user_id: External user identity
            user_name: Display name
            email: Optional contact address
            role: Participant role (default: ATTENDEE)
            notes: Optional notes

        Returns:
            Created Participant with status REGISTERED or WAITLIST

        Raises:
            EventNotFound: If the event is missing or owned by another client
            ValidationError: If role is unknown
            ConflictError: If the user already holds a non-cancelled participation
        """
        return self.register(
            event_guid,
            client_id,
            user_id,
            user_name,
            email=email,
            role=role,
            notes=notes,
        ).participant

    def register(
        self,
        event_guid: str,
        client_id: int,
        user_id: str,
        user_name: str,
        email: Optional[str] = None,
        role: str = ParticipantRole.ATTENDEE.value,
        notes: Optional[str] = None,
    ) -> JoinResult:
        """
        Same as join(), also reporting waitlisted participants that were
        promoted into free seats before the newcomer was placed.
        """
        valid_roles = {r.value for r in ParticipantRole}
        if role not in valid_roles:
            raise ValidationError(
                f"Invalid role: {role}. Must be one of {sorted(valid_roles)}",
                field="role",
            )

        event = get_event_for_client(self.db, event_guid, client_id)

        with self.locks.hold(event.id):
            try:
                event = self.lock_event_row(event.id)

                existing = (
                    self.db.query(Participant.id)
                    .filter(
                        Participant.event_id == event.id,
                        Participant.user_id == user_id,
                        Participant.status != ParticipantStatus.CANCELLED.value,
                    )
                    .first()
                )
                if existing:
                    raise ConflictError(
                        f"User '{user_id}' is already registered for this event"
                    )

                # Earlier waiters take any open seat first
                promoted = self.promoter.fill_open_seats(event.id)

                status = (
                    ParticipantStatus.REGISTERED
                    if self.has_free_seat(event)
                    else ParticipantStatus.WAITLIST
                )

                participant = Participant(
                    event_id=event.id,
                    user_id=user_id,
                    user_name=user_name,
                    email=email,
                    role=role,
                    notes=notes,
                    status=status.value,
                )
                self.db.add(participant)
                self.db.flush()

                if status is ParticipantStatus.REGISTERED:
                    try:
                        self._verify_seat(event)
                    except CapacityRace as race:
                        logger.warning(
                            "Seat claim lost to concurrent registration, waitlisting",
                            extra={
                                "event_id": race.event_id,
                                "capacity": race.capacity,
                                "active_count": race.active_count,
                            },
                        )
                        participant.status = ParticipantStatus.WAITLIST.value
                        self.db.flush()

                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(participant)

        if promoted:
            logger.warning(
                "Open seats found at join, waitlist drained first",
                extra={"event_guid": event_guid, "promoted": len(promoted)},
            )
        logger.info(
            "Participant joined event",
            extra={
                "event_guid": event_guid,
                "participant_guid": participant.guid,
                "status": participant.status,
                "client_id": client_id,
            },
        )
        return JoinResult(participant=participant, promoted=promoted)

    def _verify_seat(self, event: Event) -> None:
        """
        Re-count the roster after a flushed seat claim.

        Raises:
            CapacityRace: If the roster now exceeds capacity
        """
        if event.max_participants is None:
            return
        active = self.active_count(event.id)
        if active > event.max_participants:
            raise CapacityRace(event.id, event.max_participants, active)

"""
Waitlist promotion for capacity-limited events.

Design:
- promote() fills one freed seat: callers invoke it once per departure from
  the active roster (cancellation, demotion, check-in)
- fill_open_seats() fills every open seat; used when capacity is raised and
  before a newcomer is placed
- FIFO by (created_at, id)
- Refuses to promote when the event has no free seat
- Does not commit; the caller owns the transaction and must hold the event's
  lock from capacity_service.event_locks
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from eventplan.models import Event, Participant, ParticipantStatus
from eventplan.services.capacity_service import CapacityController
from eventplan.utils.logging_config import get_logger


logger = get_logger("services")


class WaitlistPromoter:
    """
    Advances the earliest waitlisted participant to REGISTERED.

    Usage:
        >>> with event_locks.hold(event.id):
        ...     promoted = WaitlistPromoter(db_session).fill_open_seats(event.id)
        ...     db_session.commit()
    """

    def __init__(self, db: Session):
        self.db = db
        self._capacity = CapacityController(db)

    def queue(self, event_id: int) -> List[Participant]:
        """Waitlisted participants in promotion order."""
        return (
            self.db.query(Participant)
            .filter(
                Participant.event_id == event_id,
                Participant.status == ParticipantStatus.WAITLIST.value,
            )
            .order_by(Participant.created_at.asc(), Participant.id.asc())
            .all()
        )

    def promote(self, event_id: int, skip_id: Optional[int] = None) -> Optional[Participant]:
        """
        Promote the head of the waitlist, if a seat is free.

        Args:
            event_id: Internal event id
            skip_id: Participant id to pass over (one just moved to the waitlist)

        Returns:
            The promoted participant, or None when the waitlist is empty
            or the event is full
        """
        event = self.db.get(Event, event_id)
        if event is None:
            return None

        if not self._capacity.has_free_seat(event):
            logger.debug(
                "No free seat, promotion skipped",
                extra={"event_id": event_id},
            )
            return None

        query = self.db.query(Participant).filter(
            Participant.event_id == event_id,
            Participant.status == ParticipantStatus.WAITLIST.value,
        )
        if skip_id is not None:
            query = query.filter(Participant.id != skip_id)
        head = query.order_by(Participant.created_at.asc(), Participant.id.asc()).first()
        if head is None:
            return None

        head.status = ParticipantStatus.REGISTERED.value
        self.db.flush()

        logger.info(
            "Promoted waitlisted participant",
            extra={
                "event_id": event_id,
                "participant_guid": head.guid,
                "user_id": head.user_id,
            },
        )
        return head

    def fill_open_seats(self, event_id: int, skip_id: Optional[int] = None) -> List[Participant]:
        """Promote in FIFO order until the event is full or the waitlist is empty."""
        promoted = []
        while True:
            head = self.promote(event_id, skip_id=skip_id)
            if head is None:
                return promoted
            promoted.append(head)

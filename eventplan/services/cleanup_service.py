"""
Cleanup service for past recurring occurrences.

Provides the sweep that deletes occurrence events whose start time has passed.

Design:
- Only leaf occurrences (parent_event_id set) are deleted; templates and
  standalone events are never swept
- Participants of a swept occurrence are deleted with it
- Batch deletions with configurable batch size (default from settings)
- Idempotent: a second sweep with the same "now" deletes nothing
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventplan.config.settings import get_settings
from eventplan.models import Event, Participant
from eventplan.services.capacity_service import event_locks
from eventplan.utils.logging_config import get_logger


logger = get_logger("services")


@dataclass
class SweepStats:
    """
    Statistics from a sweep.

    Attributes:
        occurrences_deleted: Number of occurrence events deleted
        participants_deleted: Number of participants deleted with them
        batches: Number of committed batches
        errors: Error messages encountered during the sweep
    """
    occurrences_deleted: int = 0
    participants_deleted: int = 0
    batches: int = 0
    errors: List[str] = field(default_factory=list)


class CleanupService:
    """
    Service for deleting past occurrence events.

    Usage:
        >>> service = CleanupService(db_session)
        >>> stats = service.sweep_past_occurrences()
        >>> print(f"Deleted {stats.occurrences_deleted} occurrences")
    """

    def __init__(self, db: Session, batch_size: Optional[int] = None):
        """
        Initialize cleanup service.

        Args:
            db: SQLAlchemy database session
            batch_size: Number of events to delete per batch (default: settings)
        """
        self.db = db
        self.batch_size = batch_size or get_settings().sweep_batch_size

    def sweep_past_occurrences(self, now: Optional[datetime] = None) -> SweepStats:
        """
        Delete occurrence events that started before now.

        A failed batch is rolled back, recorded in stats.errors and ends the
        sweep; earlier batches stay committed.

        Args:
            now: Cutoff (default: current UTC time)

        Returns:
            SweepStats with deletion counts and any errors
        """
        now = now or datetime.utcnow()
        stats = SweepStats()

        logger.info("Starting past-occurrence sweep", extra={"cutoff": now.isoformat()})

        while True:
            event_ids = [
                row.id
                for row in (
                    self.db.query(Event.id)
                    .filter(
                        Event.parent_event_id.isnot(None),
                        Event.start_time < now,
                    )
                    .order_by(Event.start_time.asc(), Event.id.asc())
                    .limit(self.batch_size)
                    .all()
                )
            ]

            if not event_ids:
                break

            try:
                participants_deleted = (
                    self.db.query(Participant)
                    .filter(Participant.event_id.in_(event_ids))
                    .delete(synchronize_session=False)
                )
                occurrences_deleted = (
                    self.db.query(Event)
                    .filter(Event.id.in_(event_ids))
                    .delete(synchronize_session=False)
                )
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                error_msg = f"Error deleting past occurrences: {e}"
                logger.error(error_msg, extra={"batch_size": len(event_ids)})
                stats.errors.append(error_msg)
                break

            # Deleted rows must not linger in the identity map
            self.db.expire_all()

            for event_id in event_ids:
                event_locks.discard(event_id)

            stats.participants_deleted += participants_deleted
            stats.occurrences_deleted += occurrences_deleted
            stats.batches += 1

        logger.info(
            "Past-occurrence sweep completed",
            extra={
                "occurrences_deleted": stats.occurrences_deleted,
                "participants_deleted": stats.participants_deleted,
                "batches": stats.batches,
                "errors": len(stats.errors),
            },
        )
        return stats

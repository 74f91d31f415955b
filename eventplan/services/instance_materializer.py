"""
Materialization of recurring templates into occurrence events.

Runs once, at template creation time. Each future occurrence becomes its own
Event row linked to the template through parent_event_id.

Design:
- Occurrences at or before "now" are skipped, never retried
- Every occurrence is committed on its own; a failed write is rolled back
  alone and reported, earlier occurrences stay persisted
- Participants are never copied to occurrences
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventplan.models import Event
from eventplan.services.recurrence import RecurrenceExpander
from eventplan.utils.logging_config import get_logger


logger = get_logger("services")

# Template columns never copied to an occurrence
_EXCLUDED_COLUMNS = frozenset({
    "id",
    "uuid",
    "start_time",
    "end_time",
    "is_recurring",
    "parent_event_id",
    "recurrence_rule",
    "recurrence_end_date",
    "recurrence_count",
    "created_at",
    "updated_at",
})


@dataclass
class MaterializationResult:
    """
    Outcome of materializing a template.

    Attributes:
        created: Occurrence events persisted, in start order
        skipped_past: Number of occurrences at or before "now"
        errors: One message per occurrence that failed to persist
    """
    created: List[Event] = field(default_factory=list)
    skipped_past: int = 0
    errors: List[str] = field(default_factory=list)


class InstanceMaterializer:
    """
    Creates occurrence events for a recurring template.

    Usage:
        >>> materializer = InstanceMaterializer(db_session)
        >>> result = materializer.materialize(template)
        >>> len(result.created)
        12
    """

    def __init__(self, db: Session, expander: Optional[RecurrenceExpander] = None):
        """
        Initialize the materializer.

        Args:
            db: SQLAlchemy database session
            expander: Recurrence expander (default: settings-configured instance)
        """
        self.db = db
        self.expander = expander or RecurrenceExpander()

    def materialize(self, parent: Event, now: Optional[datetime] = None) -> MaterializationResult:
        """
        Persist one occurrence event per future occurrence of the template.

        Args:
            parent: Persisted template event carrying a recurrence rule
            now: Reference time (default: current UTC time)

        Returns:
            MaterializationResult

        Raises:
            InvalidRecurrenceRule: If the template's rule cannot be parsed
        """
        now = now or datetime.utcnow()
        result = MaterializationResult()

        if not parent.recurrence_rule:
            return result

        occurrences = self.expander.expand(
            parent.start_time,
            parent.recurrence_rule,
            end_date=parent.recurrence_end_date,
            max_occurrences=parent.recurrence_count,
        )

        template_values = self._template_values(parent)

        for occurrence_start in occurrences:
            if occurrence_start <= now:
                result.skipped_past += 1
                continue

            child = Event(
                **template_values,
                start_time=occurrence_start,
                end_time=self.expander.occurrence_end(
                    occurrence_start, parent.start_time, parent.end_time
                ),
                is_recurring=False,
                parent_event_id=parent.id,
            )

            try:
                self.db.add(child)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                error_msg = f"Failed to create occurrence at {occurrence_start.isoformat()}: {e}"
                logger.error(
                    error_msg,
                    extra={"parent_event_id": parent.id, "occurrence": occurrence_start.isoformat()},
                )
                result.errors.append(error_msg)
                continue

            result.created.append(child)

        logger.info(
            "Materialized recurring event",
            extra={
                "parent_event_id": parent.id,
                "occurrences_expanded": len(occurrences),
                "created": len(result.created),
                "skipped_past": result.skipped_past,
                "errors": len(result.errors),
            },
        )
        return result

    @staticmethod
    def _template_values(parent: Event) -> dict:
        """Column values copied from the template to every occurrence."""
        values = {}
        for column in Event.__table__.columns:
            if column.key in _EXCLUDED_COLUMNS:
                continue
            value = getattr(parent, column.key)
            if isinstance(value, list):
                value = list(value)
            values[column.key] = value
        return values

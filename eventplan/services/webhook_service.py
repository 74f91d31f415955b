"""
Webhook notification service.

Posts JSON notifications about event and participant changes to the owning
client's webhook URL.

Design:
- Delivery is fire-and-forget on a small thread pool; callers never wait
- At-most-once: no retries, no persistence of undelivered notifications
- Failures (connection errors, timeouts, non-2xx responses) are logged and
  never raised back into the caller
- Payload: {"event", "timestamp", "clientId", "data"}
"""

import enum
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx

from eventplan.config.settings import get_settings
from eventplan.models import Event, Participant
from eventplan.utils.logging_config import get_logger


logger = get_logger("webhooks")


class WebhookEventType(str, enum.Enum):
    """Notification types delivered to clients."""
    EVENT_CREATED = "event.created"
    EVENT_UPDATED = "event.updated"
    EVENT_PUBLISHED = "event.published"
    EVENT_CANCELLED = "event.cancelled"
    EVENT_COMPLETED = "event.completed"

    PARTICIPANT_JOINED = "participant.joined"
    PARTICIPANT_STATUS_CHANGED = "participant.status_changed"
    PARTICIPANT_REMOVED = "participant.removed"
    PARTICIPANT_CHECKED_IN = "participant.checked_in"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() + "Z" if value is not None else None


def format_event_for_webhook(event: Event) -> Dict[str, Any]:
    """
    Snapshot of an event for a webhook payload.

    Args:
        event: Event to serialize

    Returns:
        JSON-serializable dictionary
    """
    price = event.price
    if isinstance(price, Decimal):
        price = float(price)

    return {
        "id": event.guid,
        "title": event.title,
        "description": event.description,
        "authorId": event.author_id,
        "authorName": event.author_name,
        "authorEmail": event.author_email,
        "startTime": _iso(event.start_time),
        "endTime": _iso(event.end_time),
        "timezone": event.timezone,
        "status": event.status,
        "type": event.event_type,
        "coverImageUrl": event.cover_image_url,
        "tags": list(event.tags or []),
        "categoryId": event.category.guid if event.category else None,
        "category": event.category.name if event.category else None,
        "locationName": event.location_name,
        "locationAddress": event.location_address,
        "locationUrl": event.location_url,
        "isOnline": event.is_online,
        "maxParticipants": event.max_participants,
        "isPublic": event.is_public,
        "price": price,
        "currency": event.currency,
        "isRecurring": event.is_recurring,
        "parentEventId": event.parent_event.guid if event.parent_event else None,
        "createdAt": _iso(event.created_at),
        "updatedAt": _iso(event.updated_at),
    }


def format_participant_for_webhook(
    participant: Participant,
    previous_status: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Snapshot of a participant for a webhook payload.

    Args:
        participant: Participant to serialize
        previous_status: Status before the change (status_changed notifications)

    Returns:
        JSON-serializable dictionary
    """
    data = {
        "id": participant.guid,
        "eventId": participant.event.guid if participant.event else None,
        "eventTitle": participant.event.title if participant.event else "Unknown Event",
        "userId": participant.user_id,
        "userName": participant.user_name,
        "email": participant.email,
        "status": participant.status,
        "role": participant.role,
        "notes": participant.notes,
        "checkedIn": participant.checked_in,
        "checkedInAt": _iso(participant.checked_in_at),
        "createdAt": _iso(participant.created_at),
    }
    if previous_status is not None:
        data["previousStatus"] = previous_status
    return data


class WebhookService:
    """
    Delivers webhook notifications in the background.

    Usage:
        >>> webhooks = WebhookService()
        >>> webhooks.dispatch(
        ...     client.webhook_url,
        ...     WebhookEventType.EVENT_CREATED,
        ...     client.guid,
        ...     format_event_for_webhook(event),
        ... )
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        max_workers: Optional[int] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize webhook service.

        Args:
            timeout: Request timeout in seconds (default: settings)
            user_agent: User-Agent header (default: settings)
            max_workers: Delivery threads (default: settings)
            http_client: Pre-configured httpx client (tests)
        """
        settings = get_settings()
        self._timeout = timeout if timeout is not None else settings.webhook_timeout_seconds
        user_agent = user_agent or settings.webhook_user_agent

        self._client = http_client or httpx.Client(
            headers={
                "User-Agent": user_agent,
                "Content-Type": "application/json",
            },
            timeout=self._timeout,
        )
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.webhook_workers,
            thread_name_prefix="eventplan-webhook",
        )

    @staticmethod
    def build_payload(
        event_type: WebhookEventType,
        client_id: str,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Envelope shared by every notification."""
        return {
            "event": WebhookEventType(event_type).value,
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "clientId": client_id,
            "data": data,
        }

    def dispatch(
        self,
        webhook_url: Optional[str],
        event_type: WebhookEventType,
        client_id: str,
        data: Dict[str, Any],
    ) -> Optional[Future]:
        """
        Queue a notification for background delivery.

        Args:
            webhook_url: Destination URL (None or empty: notification dropped)
            event_type: Notification type
            client_id: Client GUID placed in the envelope
            data: Entity snapshot

        Returns:
            Future resolving to the delivery outcome, or None when nothing was queued
        """
        if not webhook_url:
            logger.warning(
                "Webhook URL not configured, notification dropped",
                extra={"client_id": client_id, "webhook_event": WebhookEventType(event_type).value},
            )
            return None

        payload = self.build_payload(event_type, client_id, data)
        try:
            future = self._executor.submit(self.send, webhook_url, payload)
        except RuntimeError as e:
            # Executor already shut down
            logger.error(
                f"Webhook not queued: {e}",
                extra={"client_id": client_id, "webhook_event": payload["event"]},
            )
            return None

        future.add_done_callback(self._log_unexpected_failure)
        return future

    def send(self, webhook_url: str, payload: Dict[str, Any]) -> bool:
        """
        POST a payload synchronously.

        Returns:
            True on a 2xx response, False otherwise
        """
        log_extra = {
            "client_id": payload.get("clientId"),
            "webhook_event": payload.get("event"),
            "url": webhook_url,
        }
        try:
            response = self._client.post(webhook_url, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error(f"Webhook delivery timed out: {e}", extra=log_extra)
            return False
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Webhook delivery failed: {e}", extra=log_extra)
            return False

        logger.info("Webhook notification sent", extra=log_extra)
        return True

    @staticmethod
    def _log_unexpected_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Unexpected webhook delivery error: {exc!r}")

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting notifications and close the HTTP client."""
        self._executor.shutdown(wait=wait)
        self._client.close()


@lru_cache()
def get_webhook_service() -> WebhookService:
    """
    Get the process-wide webhook service.

    Returns:
        WebhookService configured from settings
    """
    return WebhookService()

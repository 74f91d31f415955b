"""
Integration tests for the full event flow.

Client onboarding, recurring event creation, registrations with waitlist
promotion, the lifecycle, and the daily sweep, wired together the way a
request layer would use the services.
"""

import pytest
from datetime import date, datetime, timedelta
from sqlalchemy.orm import sessionmaker

from eventplan.models import Event, Participant
from eventplan.services import (
    CategoryService,
    ClientService,
    DailySweepScheduler,
    EventNotFound,
    EventService,
    ParticipantService,
    WebhookEventType,
)


pytestmark = pytest.mark.integration


@pytest.fixture
def services(test_db_session, mock_webhooks, lock_registry):
    return {
        'clients': ClientService(test_db_session),
        'categories': CategoryService(test_db_session),
        'events': EventService(test_db_session, webhooks=mock_webhooks, locks=lock_registry),
        'participants': ParticipantService(
            test_db_session, webhooks=mock_webhooks, locks=lock_registry
        ),
    }


class TestEventFlow:
    """End-to-end flow across the services."""

    def test_recurring_series_registration_and_sweep(
        self, services, test_db_session, test_db_engine, mock_webhooks
    ):
        client = services['clients'].create_client('Yoga Studio', webhook_url='https://studio.test/hooks')
        resolved = services['clients'].resolve_token(client.token)
        category = services['categories'].create('Classes', resolved.id, color='#22C55E')

        creation = services['events'].create_event(
            client_id=resolved.id,
            title='Morning Flow',
            start_time=datetime(2024, 1, 1, 7, 0),
            end_time=datetime(2024, 1, 1, 8, 0),
            status='PUBLISHED',
            category_guid=category.guid,
            recurrence_rule='FREQ=WEEKLY',
            recurrence_end_date=date(2024, 12, 31),
            recurrence_count=3,
            max_participants=2,
            now=datetime(2023, 12, 1),
        )
        assert len(creation.occurrences) == 3
        first = creation.occurrences[0]

        svc = services['participants']
        svc.join(first.guid, resolved.id, 'ana', 'Ana')
        svc.join(first.guid, resolved.id, 'ben', 'Ben')
        carla = svc.join(first.guid, resolved.id, 'carla', 'Carla')
        assert carla.status == 'WAITLIST'

        svc.remove_participant(first.guid, resolved.id, 'ana')
        assert [p.user_id for p in svc.list_participants(first.guid, resolved.id, status='REGISTERED')] == [
            'ben', 'carla'
        ]

        stats = services['events'].get_event_stats(first.guid, resolved.id)
        assert stats['available_spots'] == 0
        assert stats['cancelled'] == 1

        # Another tenant sees nothing
        intruder = services['clients'].create_client('Intruder')
        with pytest.raises(EventNotFound):
            svc.join(first.guid, intruder.id, 'eve', 'Eve')

        sent = [c.args[1] for c in mock_webhooks.dispatch.call_args_list]
        assert sent[0] == WebhookEventType.EVENT_CREATED
        assert sent.count(WebhookEventType.PARTICIPANT_JOINED) == 3
        assert WebhookEventType.PARTICIPANT_REMOVED in sent
        assert WebhookEventType.PARTICIPANT_STATUS_CHANGED in sent

        # Sweep the day after the second occurrence
        scheduler = DailySweepScheduler(
            sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine),
            clock=lambda: datetime(2024, 1, 9, 2, 0),
        )
        sweep = scheduler.run_once()

        assert sweep.occurrences_deleted == 2
        assert sweep.participants_deleted == 3
        test_db_session.expire_all()
        remaining = test_db_session.query(Event).order_by(Event.start_time).all()
        assert [e.start_time for e in remaining] == [
            datetime(2024, 1, 1, 7, 0),
            datetime(2024, 1, 15, 7, 0),
        ]
        assert remaining[0].id == creation.event.id
        assert test_db_session.query(Participant).count() == 0

    def test_lifecycle(self, services, test_client):
        events = services['events']
        created = events.create_event(
            client_id=test_client.id,
            title='Hackathon',
            start_time=datetime.utcnow() + timedelta(days=10),
        ).event

        assert events.publish_event(created.guid, test_client.id).status == 'PUBLISHED'
        assert events.complete_event(created.guid, test_client.id).status == 'COMPLETED'
        assert events.complete_event(created.guid, test_client.id).status == 'COMPLETED'

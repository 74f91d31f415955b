"""
Unit tests for CleanupService.

Tests the past-occurrence sweep: which events are deleted, participant
removal, batching, idempotence and failure handling.
"""

import pytest
from datetime import datetime, timedelta
from freezegun import freeze_time
from sqlalchemy.exc import SQLAlchemyError

from eventplan.models import Event, Participant
from eventplan.services.cleanup_service import CleanupService


NOW = datetime(2024, 6, 1, 2, 0)


@pytest.fixture
def cleanup_service(test_db_session):
    return CleanupService(test_db_session, batch_size=100)


@pytest.fixture
def recurring_series(sample_event):
    """Template with two past and two future occurrences around NOW."""
    template = sample_event(
        title='Series',
        start_time=datetime(2024, 5, 1, 9, 0),
        recurrence_rule='FREQ=WEEKLY',
        is_recurring=True,
    )
    past = [
        sample_event(title='Series', start_time=NOW - timedelta(days=d), parent_event_id=template.id)
        for d in (14, 7)
    ]
    future = [
        sample_event(title='Series', start_time=NOW + timedelta(days=d), parent_event_id=template.id)
        for d in (7, 14)
    ]
    return template, past, future


class TestSweepPastOccurrences:
    """Tests for CleanupService.sweep_past_occurrences()."""

    def test_deletes_only_past_occurrences(
        self, cleanup_service, recurring_series, sample_event, test_db_session
    ):
        template, past, future = recurring_series
        standalone_past = sample_event(title='Old one-off', start_time=NOW - timedelta(days=30))
        past_ids = [e.id for e in past]

        stats = cleanup_service.sweep_past_occurrences(now=NOW)

        assert stats.occurrences_deleted == 2
        assert stats.errors == []
        remaining = {e.id for e in test_db_session.query(Event).all()}
        assert remaining == {template.id, standalone_past.id} | {e.id for e in future}
        assert not remaining & set(past_ids)

    def test_deletes_participants_of_swept_occurrences(
        self, cleanup_service, recurring_series, sample_participant, test_db_session
    ):
        _, past, future = recurring_series
        sample_participant(past[0], 'a')
        sample_participant(past[1], 'b', status='WAITLIST')
        kept = sample_participant(future[0], 'c')

        stats = cleanup_service.sweep_past_occurrences(now=NOW)

        assert stats.participants_deleted == 2
        assert [p.id for p in test_db_session.query(Participant).all()] == [kept.id]

    def test_occurrence_starting_exactly_now_is_kept(
        self, cleanup_service, sample_event, test_db_session
    ):
        template = sample_event(start_time=NOW - timedelta(days=7))
        sample_event(start_time=NOW, parent_event_id=template.id)

        stats = cleanup_service.sweep_past_occurrences(now=NOW)

        assert stats.occurrences_deleted == 0

    def test_idempotent(self, cleanup_service, recurring_series):
        first = cleanup_service.sweep_past_occurrences(now=NOW)
        second = cleanup_service.sweep_past_occurrences(now=NOW)

        assert first.occurrences_deleted == 2
        assert second.occurrences_deleted == 0
        assert second.batches == 0

    def test_batches(self, test_db_session, sample_event):
        template = sample_event(start_time=NOW - timedelta(days=60))
        for d in range(1, 6):
            sample_event(start_time=NOW - timedelta(days=d), parent_event_id=template.id)

        stats = CleanupService(test_db_session, batch_size=2).sweep_past_occurrences(now=NOW)

        assert stats.occurrences_deleted == 5
        assert stats.batches == 3

    @freeze_time('2024-06-01 02:00:00')
    def test_defaults_to_current_time(self, cleanup_service, recurring_series):
        stats = cleanup_service.sweep_past_occurrences()
        assert stats.occurrences_deleted == 2

    def test_database_error_recorded(
        self, cleanup_service, recurring_series, test_db_session, mocker
    ):
        mocker.patch.object(test_db_session, 'commit', side_effect=SQLAlchemyError('locked'))

        stats = cleanup_service.sweep_past_occurrences(now=NOW)

        assert stats.occurrences_deleted == 0
        assert len(stats.errors) == 1
        assert 'locked' in stats.errors[0]

    def test_discards_locks_of_swept_events(self, cleanup_service, recurring_series, mocker):
        _, past, _ = recurring_series
        past_ids = sorted(e.id for e in past)
        discard = mocker.patch('eventplan.services.cleanup_service.event_locks.discard')

        cleanup_service.sweep_past_occurrences(now=NOW)

        assert sorted(c.args[0] for c in discard.call_args_list) == past_ids

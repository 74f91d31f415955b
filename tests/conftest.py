"""
Pytest configuration and fixtures for EventPlan tests.

Provides shared fixtures for:
- Test database sessions (in-memory and file-backed SQLite)
- A mock webhook dispatcher
- Sample data factories (clients, categories, events, participants)
"""

import os
import pytest
from datetime import datetime, timedelta
from unittest.mock import Mock
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
os.environ['EVENTPLAN_DB_URL'] = 'sqlite:///:memory:'
os.environ.setdefault('EVENTPLAN_LOG_LEVEL', 'WARNING')

from eventplan.models import Base, Client, Category, Event, Participant
from eventplan.services.capacity_service import EventLockRegistry
from eventplan.services.webhook_service import WebhookService


def _fk_pragma_on_connect(dbapi_con, con_record):
    dbapi_con.execute('pragma foreign_keys=ON')


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    event.listen(engine, 'connect', _fk_pragma_on_connect)

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope='function')
def test_db_session(test_db_engine):
    """Create a test database session."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope='function')
def file_db_session_factory(tmp_path):
    """
    Session factory over a file-backed SQLite database.

    Each call returns an independent session with its own connection, as
    concurrent request handlers would have.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'eventplan_test.db'}",
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    event.listen(engine, 'connect', _fk_pragma_on_connect)
    Base.metadata.create_all(engine)

    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory

    engine.dispose()


# ============================================================================
# Collaborator Fixtures
# ============================================================================

@pytest.fixture
def mock_webhooks():
    """Webhook dispatcher that records calls instead of posting."""
    return Mock(spec=WebhookService)


@pytest.fixture
def lock_registry():
    """Fresh per-event lock registry, isolated from the process-wide one."""
    return EventLockRegistry()


# ============================================================================
# Sample Data Factories
# ============================================================================

@pytest.fixture
def sample_client(test_db_session):
    """Factory for creating sample Client models in the database."""
    counter = {'n': 0}

    def _create(name=None, webhook_url='https://hooks.example.test/eventplan', is_active=True):
        counter['n'] += 1
        client = Client(
            name=name or f'Client {counter["n"]}',
            token=f'test-token-{counter["n"]}-{id(counter)}',
            webhook_url=webhook_url,
            is_active=is_active,
        )
        test_db_session.add(client)
        test_db_session.commit()
        test_db_session.refresh(client)
        return client
    return _create


@pytest.fixture
def test_client(sample_client):
    """A default client (tenant) for tests."""
    return sample_client(name='Test Client')


@pytest.fixture
def other_client(sample_client):
    """A second client, for tenant isolation tests."""
    return sample_client(name='Other Client')


@pytest.fixture
def sample_category(test_db_session, test_client):
    """Factory for creating sample Category models in the database."""
    def _create(name='Workshop', client_id=None, color='#3B82F6'):
        category = Category(
            name=name,
            client_id=client_id if client_id is not None else test_client.id,
            color=color,
        )
        test_db_session.add(category)
        test_db_session.commit()
        test_db_session.refresh(category)
        return category
    return _create


@pytest.fixture
def sample_event(test_db_session, test_client):
    """Factory for creating sample Event models directly in the database."""
    def _create(
        title='Test Event',
        client_id=None,
        start_time=None,
        end_time=None,
        max_participants=None,
        status='PUBLISHED',
        parent_event_id=None,
        **kwargs
    ):
        if start_time is None:
            start_time = datetime.utcnow() + timedelta(days=7)
        event_obj = Event(
            title=title,
            client_id=client_id if client_id is not None else test_client.id,
            start_time=start_time,
            end_time=end_time,
            max_participants=max_participants,
            status=status,
            parent_event_id=parent_event_id,
            **kwargs
        )
        test_db_session.add(event_obj)
        test_db_session.commit()
        test_db_session.refresh(event_obj)
        return event_obj
    return _create


@pytest.fixture
def sample_participant(test_db_session):
    """Factory for inserting Participant rows with an explicit status."""
    def _create(event_obj, user_id, status='REGISTERED', user_name=None, created_at=None):
        participant = Participant(
            event_id=event_obj.id,
            user_id=user_id,
            user_name=user_name or user_id.title(),
            status=status,
        )
        if created_at is not None:
            participant.created_at = created_at
        test_db_session.add(participant)
        test_db_session.commit()
        test_db_session.refresh(participant)
        return participant
    return _create

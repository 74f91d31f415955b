"""
Unit tests for AppSettings.
"""

import pytest
from pydantic import ValidationError

from eventplan.config.settings import AppSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        'EVENTPLAN_DEFAULT_MAX_OCCURRENCES',
        'EVENTPLAN_RECURRENCE_HARD_LIMIT',
        'EVENTPLAN_WEBHOOK_TIMEOUT',
        'EVENTPLAN_WEBHOOK_USER_AGENT',
        'EVENTPLAN_WEBHOOK_WORKERS',
        'EVENTPLAN_SWEEP_HOUR',
        'EVENTPLAN_SWEEP_BATCH_SIZE',
    ):
        monkeypatch.delenv(name, raising=False)


class TestAppSettings:

    def test_defaults(self):
        settings = AppSettings(_env_file=None)

        assert settings.default_max_occurrences == 52
        assert settings.recurrence_hard_limit == 1000
        assert settings.webhook_timeout_seconds == 10.0
        assert settings.webhook_workers == 4
        assert settings.sweep_hour == 2
        assert settings.sweep_batch_size == 100

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv('EVENTPLAN_DEFAULT_MAX_OCCURRENCES', '12')
        monkeypatch.setenv('EVENTPLAN_SWEEP_HOUR', '23')
        monkeypatch.setenv('EVENTPLAN_WEBHOOK_USER_AGENT', '  Custom/2.0  ')

        settings = AppSettings(_env_file=None)

        assert settings.default_max_occurrences == 12
        assert settings.sweep_hour == 23
        assert settings.webhook_user_agent == 'Custom/2.0'

    @pytest.mark.parametrize('name,value', [
        ('EVENTPLAN_WEBHOOK_USER_AGENT', '   '),
        ('EVENTPLAN_SWEEP_HOUR', '24'),
        ('EVENTPLAN_DEFAULT_MAX_OCCURRENCES', '0'),
        ('EVENTPLAN_WEBHOOK_TIMEOUT', '0'),
    ])
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValidationError):
            AppSettings(_env_file=None)

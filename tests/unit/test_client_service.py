"""
Unit tests for ClientService.
"""

import pytest

from eventplan.services.client_service import ClientService, generate_token
from eventplan.services.exceptions import NotFoundError, ValidationError


@pytest.fixture
def client_service(test_db_session):
    return ClientService(test_db_session)


class TestClientService:

    def test_generate_token(self):
        token = generate_token()
        assert token.startswith('evp_')
        assert token != generate_token()

    def test_create_and_resolve(self, client_service):
        client = client_service.create_client(' Acme ', webhook_url='https://acme.test/hooks')

        assert client.name == 'Acme'
        assert client.guid.startswith('cli_')
        assert client_service.resolve_token(client.token).id == client.id

    def test_create_without_webhook(self, client_service):
        assert client_service.create_client('Quiet').webhook_url is None

    @pytest.mark.parametrize('url', ['ftp://acme.test', 'acme.test/hooks'])
    def test_invalid_webhook_url(self, client_service, url):
        with pytest.raises(ValidationError) as exc_info:
            client_service.create_client('Acme', webhook_url=url)
        assert exc_info.value.field == 'webhook_url'

    def test_empty_name(self, client_service):
        with pytest.raises(ValidationError):
            client_service.create_client('')

    @pytest.mark.parametrize('token', ['', None, 'evp_unknown'])
    def test_resolve_unknown_token(self, client_service, token):
        with pytest.raises(NotFoundError):
            client_service.resolve_token(token)

    def test_inactive_client_does_not_resolve(self, client_service):
        client = client_service.create_client('Acme')
        client_service.set_active(client.guid, False)

        with pytest.raises(NotFoundError):
            client_service.resolve_token(client.token)

    def test_regenerate_token(self, client_service):
        client = client_service.create_client('Acme')
        old_token = client.token

        client_service.regenerate_token(client.guid)

        assert client.token != old_token
        assert client_service.resolve_token(client.token).id == client.id
        with pytest.raises(NotFoundError):
            client_service.resolve_token(old_token)

    def test_update_webhook_url(self, client_service):
        client = client_service.create_client('Acme')
        updated = client_service.update_webhook_url(client.guid, 'http://localhost:9000/hook')
        assert updated.webhook_url == 'http://localhost:9000/hook'
        assert client_service.update_webhook_url(client.guid, None).webhook_url is None

    def test_get_by_unknown_guid(self, client_service):
        with pytest.raises(NotFoundError):
            client_service.get_by_guid('cli_nope')

    def test_list_clients(self, client_service):
        a = client_service.create_client('A')
        b = client_service.create_client('B')
        assert [c.id for c in client_service.list_clients()] == [a.id, b.id]

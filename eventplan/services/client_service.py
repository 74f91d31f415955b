"""
Client service: tenants and their bearer tokens.

Resolves the opaque bearer token presented by a request to the owning
client. Every other service receives only the resolved client id.
"""

import secrets
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from eventplan.models import Client
from eventplan.services.exceptions import ConflictError, NotFoundError, ValidationError
from eventplan.services.guid import GuidService
from eventplan.utils.logging_config import get_logger


logger = get_logger("services")

TOKEN_PREFIX = "evp_"
TOKEN_BYTES = 32


def generate_token() -> str:
    """Generate a new opaque client token."""
    return f"{TOKEN_PREFIX}{secrets.token_urlsafe(TOKEN_BYTES)}"


class ClientService:
    """
    Service for managing clients (tenants).

    Usage:
        >>> service = ClientService(db_session)
        >>> client = service.create_client("Acme", webhook_url="https://acme.test/hooks")
        >>> service.resolve_token(client.token).id == client.id
        True
    """

    def __init__(self, db: Session):
        self.db = db

    def create_client(self, name: str, webhook_url: Optional[str] = None) -> Client:
        """
        Create a client with a freshly generated token.

        Raises:
            ValidationError: If name is empty or webhook_url is not http(s)
            ConflictError: If the generated token collides (practically never)
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Client name cannot be empty", field="name")
        self._validate_webhook_url(webhook_url)

        client = Client(name=name, token=generate_token(), webhook_url=webhook_url)
        try:
            self.db.add(client)
            self.db.commit()
            self.db.refresh(client)
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Failed to create client '{name}': {e}")
            raise ConflictError("Client token collision, retry")

        logger.info(f"Created client: {client.name} ({client.guid})")
        return client

    def resolve_token(self, token: str) -> Client:
        """
        Resolve a bearer token to an active client.

        Raises:
            NotFoundError: If the token is unknown or the client is inactive
        """
        if not token:
            raise NotFoundError("Client", "token")

        client = (
            self.db.query(Client)
            .filter(Client.token == token, Client.is_active.is_(True))
            .first()
        )
        if not client:
            # Never echo the token itself
            raise NotFoundError("Client", "token")
        return client

    def get_by_guid(self, guid: str) -> Client:
        """
        Get a client by GUID.

        Raises:
            NotFoundError: If the GUID is invalid or unknown
        """
        try:
            uuid_value = GuidService.parse_guid(guid, "cli")
        except ValueError:
            raise NotFoundError("Client", guid)

        client = self.db.query(Client).filter(Client.uuid == uuid_value).first()
        if not client:
            raise NotFoundError("Client", guid)
        return client

    def list_clients(self) -> List[Client]:
        return self.db.query(Client).order_by(Client.created_at.asc(), Client.id.asc()).all()

    def regenerate_token(self, guid: str) -> Client:
        """Replace a client's token; the previous token stops resolving."""
        client = self.get_by_guid(guid)
        client.token = generate_token()
        self.db.commit()
        self.db.refresh(client)
        logger.info(f"Regenerated token for client: {client.guid}")
        return client

    def update_webhook_url(self, guid: str, webhook_url: Optional[str]) -> Client:
        """Set or clear a client's webhook URL."""
        self._validate_webhook_url(webhook_url)
        client = self.get_by_guid(guid)
        client.webhook_url = webhook_url
        self.db.commit()
        self.db.refresh(client)
        logger.info(
            f"Updated webhook URL for client: {client.guid}",
            extra={"webhook_configured": bool(webhook_url)},
        )
        return client

    def set_active(self, guid: str, is_active: bool) -> Client:
        """Enable or disable token resolution for a client."""
        client = self.get_by_guid(guid)
        client.is_active = is_active
        self.db.commit()
        self.db.refresh(client)
        logger.info(f"Client {client.guid} active={is_active}")
        return client

    @staticmethod
    def _validate_webhook_url(webhook_url: Optional[str]) -> None:
        if webhook_url and not webhook_url.startswith(("http://", "https://")):
            raise ValidationError(
                f"Invalid webhook URL: {webhook_url}. Must start with http:// or https://",
                field="webhook_url",
            )

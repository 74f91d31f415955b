"""
Client model for multi-tenancy support.

A Client is a tenancy boundary: every Event and Category belongs to exactly
one Client. Requests authenticate with the client's opaque bearer token,
which the auth layer resolves to a client id before any core operation runs.

Design Rationale:
- token is unique and opaque; it is never interpreted by the core
- webhook_url is optional; when unset, notifications are skipped
- is_active=false disables token resolution without deleting data
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from eventplan.models import Base
from eventplan.models.mixins import GuidMixin


class Client(Base, GuidMixin):
    """
    Tenant model.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (cli_xxx, inherited from GuidMixin)
        name: Display name
        token: Opaque bearer token (unique)
        webhook_url: Destination for event/participant notifications
        is_active: Whether the token resolves
        created_at: Creation timestamp
        updated_at: Last update timestamp

    Relationships:
        events: Events owned by this client (one-to-many)
        categories: Categories owned by this client (one-to-many)
    """

    __tablename__ = "clients"

    GUID_PREFIX = "cli"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(255), nullable=False)
    token = Column(String(128), unique=True, nullable=False, index=True)
    webhook_url = Column(String(1024), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    events = relationship("Event", back_populates="client", lazy="dynamic")
    categories = relationship("Category", back_populates="client", lazy="dynamic")

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.name}', is_active={self.is_active})>"

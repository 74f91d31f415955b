"""
Category model for event categorization.

Categories are tenant-scoped labels (Workshop, Meetup, Webinar, ...) that
events may reference. Names are unique per client, case-insensitively
(enforced in CategoryService, backed by a unique constraint on the raw name).
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from eventplan.models import Base
from eventplan.models.mixins import GuidMixin


class Category(Base, GuidMixin):
    """
    Event category model.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (cat_xxx, inherited from GuidMixin)
        client_id: Owning client (tenant)
        name: Category name (unique within client)
        color: Optional display color
        icon: Optional icon name
        created_at: Creation timestamp
        updated_at: Last update timestamp

    Relationships:
        client: Owning client (many-to-one)
        events: Events in this category (one-to-many, SET NULL on delete)
    """

    __tablename__ = "categories"

    GUID_PREFIX = "cat"

    id = Column(Integer, primary_key=True, autoincrement=True)

    client_id = Column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(100), nullable=False)
    color = Column(String(32), nullable=True)
    icon = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    client = relationship("Client", back_populates="categories")
    events = relationship("Event", back_populates="category", lazy="dynamic")

    __table_args__ = (
        UniqueConstraint("client_id", "name", name="uq_category_client_name"),
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}', client_id={self.client_id})>"

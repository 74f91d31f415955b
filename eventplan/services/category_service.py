"""
Category service for managing event categories.

Provides business logic for creating, reading, updating and deleting a
client's event categories.

Design:
- Category names are unique per client (case-insensitive)
- Deleting a category detaches its events (category_id set to NULL)
"""

from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func

from eventplan.models import Category, Event
from eventplan.utils.logging_config import get_logger
from eventplan.services.exceptions import NotFoundError, ConflictError, ValidationError
from eventplan.services.guid import GuidService


logger = get_logger("services")


class CategoryService:
    """
    Service for managing event categories.

    Usage:
        >>> service = CategoryService(db_session)
        >>> category = service.create(
        ...     name="Workshop",
        ...     client_id=1,
        ...     color="#3B82F6"
        ... )
    """

    def __init__(self, db: Session):
        """
        Initialize category service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def create(
        self,
        name: str,
        client_id: int,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Category:
        """
        Create a new category.

        Args:
            name: Category name (must be unique within client, case-insensitive)
            client_id: Client ID for tenant isolation
            icon: Icon name (e.g., "calendar")
            color: Hex color code (e.g., "#3B82F6")

        Returns:
            Created Category instance

        Raises:
            ConflictError: If name already exists within client
            ValidationError: If name is empty or color format is invalid
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name cannot be empty", field="name")

        if color and not self._is_valid_color(color):
            raise ValidationError(
                f"Invalid color format: {color}. Must be hex format like #RRGGBB",
                field="color",
            )

        if self._name_taken(name, client_id):
            raise ConflictError(f"Category with name '{name}' already exists")

        try:
            category = Category(
                name=name,
                icon=icon,
                color=color,
                client_id=client_id,
            )
            self.db.add(category)
            self.db.commit()
            self.db.refresh(category)

            logger.info(f"Created category: {category.name} ({category.guid}) for client_id={client_id}")
            return category

        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Failed to create category '{name}': {e}")
            raise ConflictError(f"Category with name '{name}' already exists")

    def get_by_guid(self, guid: str, client_id: int) -> Category:
        """
        Get a category by GUID.

        Args:
            guid: Category GUID (cat_xxx format)
            client_id: Client ID for tenant isolation

        Returns:
            Category instance

        Raises:
            NotFoundError: If category not found or belongs to a different client
        """
        if not GuidService.validate_guid(guid, "cat"):
            raise NotFoundError("Category", guid)

        try:
            uuid_value = GuidService.parse_guid(guid, "cat")
        except ValueError:
            raise NotFoundError("Category", guid)

        category = (
            self.db.query(Category)
            .filter(Category.uuid == uuid_value, Category.client_id == client_id)
            .first()
        )
        if not category:
            raise NotFoundError("Category", guid)

        return category

    def list(self, client_id: int) -> List[Category]:
        """
        List all categories for a client, ordered by name.

        Args:
            client_id: Client ID for tenant isolation

        Returns:
            List of Category instances
        """
        return (
            self.db.query(Category)
            .filter(Category.client_id == client_id)
            .order_by(Category.name.asc())
            .all()
        )

    def event_count(self, category: Category) -> int:
        """Number of events referencing a category."""
        return (
            self.db.query(func.count(Event.id))
            .filter(Event.category_id == category.id)
            .scalar()
        ) or 0

    def update(
        self,
        guid: str,
        client_id: int,
        name: Optional[str] = None,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Category:
        """
        Update an existing category.

        Args:
            guid: Category GUID
            client_id: Client ID for tenant isolation
            name: New name (optional)
            icon: New icon (optional)
            color: New color (optional)

        Returns:
            Updated Category instance

        Raises:
            NotFoundError: If category not found or belongs to a different client
            ConflictError: If new name conflicts with an existing one within client
            ValidationError: If name is empty or color format is invalid
        """
        category = self.get_by_guid(guid, client_id=client_id)

        if color and not self._is_valid_color(color):
            raise ValidationError(
                f"Invalid color format: {color}. Must be hex format like #RRGGBB",
                field="color",
            )

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Category name cannot be empty", field="name")
            if name.lower() != category.name.lower() and self._name_taken(
                name, client_id, exclude_id=category.id
            ):
                raise ConflictError(f"Category with name '{name}' already exists")
            category.name = name

        if icon is not None:
            category.icon = icon
        if color is not None:
            category.color = color

        try:
            self.db.commit()
            self.db.refresh(category)
            logger.info(f"Updated category: {category.name} ({category.guid})")
            return category

        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Failed to update category {guid}: {e}")
            raise ConflictError(f"Category with name '{name}' already exists")

    def delete(self, guid: str, client_id: int) -> None:
        """
        Delete a category; its events keep existing without a category.

        Args:
            guid: Category GUID
            client_id: Client ID for tenant isolation

        Raises:
            NotFoundError: If category not found or belongs to a different client
        """
        category = self.get_by_guid(guid, client_id=client_id)

        detached = (
            self.db.query(Event)
            .filter(Event.category_id == category.id)
            .update({Event.category_id: None}, synchronize_session=False)
        )

        self.db.delete(category)
        self.db.commit()

        logger.info(
            f"Deleted category: {category.name} ({guid})",
            extra={"client_id": client_id, "events_detached": detached},
        )

    def _name_taken(self, name: str, client_id: int, exclude_id: Optional[int] = None) -> bool:
        query = (
            self.db.query(Category.id)
            .filter(func.lower(Category.name) == func.lower(name))
            .filter(Category.client_id == client_id)
        )
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        return query.first() is not None

    def _is_valid_color(self, color: str) -> bool:
        """
        Validate hex color format.

        Args:
            color: Color string to validate

        Returns:
            True if valid hex color format
        """
        if not color.startswith("#"):
            return False

        # Support both #RGB and #RRGGBB formats
        hex_part = color[1:]
        if len(hex_part) not in (3, 6):
            return False

        try:
            int(hex_part, 16)
            return True
        except ValueError:
            return False

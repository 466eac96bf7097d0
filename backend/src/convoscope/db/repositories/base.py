"""
Base repository with generic CRUD operations.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from convoscope.models.db import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Generic repository providing basic CRUD operations for a model."""

    def __init__(self, model: Type[ModelType], session: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Database session
        """
        self.model = model
        self.session = session

    def get(self, id: Any) -> Optional[ModelType]:
        """
        Get a single instance by primary key.

        Args:
            id: Primary key value

        Returns:
            Model instance or None
        """
        return self.session.get(self.model, id)

    def create(self, **kwargs: Any) -> ModelType:
        """
        Create and flush a new instance so its primary key is assigned.

        Args:
            **kwargs: Model field values

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        self.session.flush()
        return instance

    def delete(self, instance: ModelType) -> None:
        """
        Delete an instance and flush.

        Args:
            instance: Model instance to delete
        """
        self.session.delete(instance)
        self.session.flush()

    def count(self) -> int:
        """Count all rows for the model."""
        return self.session.execute(
            select(func.count()).select_from(self.model)
        ).scalar_one()

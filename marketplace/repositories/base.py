"""
Base repository class with common CRUD operations using async SQLAlchemy.
Provides generic database operations that can be extended by specific repositories.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from marketplace.database import Base
from typing import TypeVar, Generic, Optional, List, Dict, Any, Type
import uuid
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository class providing common CRUD operations.

    Write methods commit by default. Pass ``commit=False`` to only flush, so a
    service can group several writes into one transaction and commit once.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        """
        Initialize repository with model class and database session.

        Args:
            model: SQLAlchemy model class
            db: Async database session
        """
        self.model = model
        self.db = db

    async def _finish(self, obj: Optional[ModelType], commit: bool) -> None:
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()
        if obj is not None:
            await self.db.refresh(obj)

    async def create(self, obj_in: Dict[str, Any], commit: bool = True) -> ModelType:
        """
        Create a new record in the database.

        Args:
            obj_in: Dictionary of field values for the new record
            commit: Commit the transaction (otherwise flush only)

        Returns:
            Created model instance

        Raises:
            Exception: If database operation fails
        """
        try:
            db_obj = self.model(**obj_in)
            self.db.add(db_obj)
            await self._finish(db_obj, commit)
            logger.debug(f"Created {self.model.__name__} with id: {db_obj.id}")
            return db_obj
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create {self.model.__name__}: {e}")
            raise

    async def get_by_id(self, id: uuid.UUID) -> Optional[ModelType]:
        """
        Get a record by its ID.

        Args:
            id: UUID of the record to retrieve

        Returns:
            Model instance if found, None otherwise
        """
        query = select(self.model).where(self.model.id == id).execution_options(populate_existing=True)

        result = await self.db.execute(query)
        obj = result.scalar_one_or_none()

        if obj:
            logger.debug(f"Retrieved {self.model.__name__} with id: {id}")
        else:
            logger.debug(f"{self.model.__name__} with id {id} not found")

        return obj

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        if filters:
            for field, value in filters.items():
                if hasattr(self.model, field):
                    if isinstance(value, (list, tuple, set)):
                        query = query.where(getattr(self.model, field).in_(list(value)))
                    else:
                        query = query.where(getattr(self.model, field) == value)
        return query

    async def get_multi(
        self,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None
    ) -> List[ModelType]:
        """
        Get multiple records with optional filtering, pagination, and ordering.

        Args:
            skip: Number of records to skip (for pagination)
            limit: Maximum number of records to return
            filters: Dictionary of field filters (list values become IN clauses)
            order_by: Field name to order by (prefix with '-' for descending)

        Returns:
            List of model instances
        """
        query = self._apply_filters(select(self.model), filters)

        if order_by:
            field_name = order_by.lstrip("-")
            if hasattr(self.model, field_name):
                column = getattr(self.model, field_name)
                query = query.order_by(column.desc() if order_by.startswith("-") else column)
        else:
            # Default ordering by created_at descending
            query = query.order_by(self.model.created_at.desc())

        query = query.offset(skip).limit(limit)

        result = await self.db.execute(query)
        objects = result.scalars().all()

        logger.debug(f"Retrieved {len(objects)} {self.model.__name__} records")
        return list(objects)

    async def update(self, db_obj: ModelType, obj_in: Dict[str, Any], commit: bool = True) -> ModelType:
        """
        Apply field values to a loaded record.

        Unlike partial-update endpoints, None is written as-is so callers can
        clear nullable columns explicitly.

        Args:
            db_obj: Instance to modify
            obj_in: Dictionary of field values to set
            commit: Commit the transaction (otherwise flush only)

        Returns:
            Updated model instance
        """
        try:
            for field, value in obj_in.items():
                setattr(db_obj, field, value)
            await self._finish(db_obj, commit)
            logger.debug(f"Updated {self.model.__name__} with id: {db_obj.id}")
            return db_obj
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to update {self.model.__name__} {db_obj.id}: {e}")
            raise

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """
        Count records with optional filtering.

        Args:
            filters: Dictionary of field filters

        Returns:
            Number of matching records
        """
        query = self._apply_filters(select(func.count(self.model.id)), filters)
        result = await self.db.execute(query)
        count = result.scalar() or 0

        logger.debug(f"Counted {count} {self.model.__name__} records")
        return count

"""
Property repository for listings with filtering and the tokenized marketplace view.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, or_, func, desc, asc
from marketplace.repositories.base import BaseRepository
from marketplace.models.property import Property, PropertyType, PropertyStatus
from marketplace.models.token import TokenIssuance
from marketplace.database import utcnow
from typing import Optional, List, Dict, Any, Tuple
from decimal import Decimal
import uuid
import logging

logger = logging.getLogger(__name__)


class PropertySearchFilters:
    """Data class for property search filters."""

    def __init__(
        self,
        owner_id: Optional[uuid.UUID] = None,
        status: Optional[PropertyStatus] = None,
        property_type: Optional[PropertyType] = None,
        min_valuation: Optional[Decimal] = None,
        max_valuation: Optional[Decimal] = None,
        search_text: Optional[str] = None
    ):
        self.owner_id = owner_id
        self.status = status
        self.property_type = property_type
        self.min_valuation = min_valuation
        self.max_valuation = max_valuation
        self.search_text = search_text


class PropertyRepository(BaseRepository[Property]):
    """
    Repository for property listings.
    Status changes go through conditional updates so concurrent reviews cannot both win.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Property, db)

    async def create_property(self, property_data: Dict[str, Any], commit: bool = True) -> Property:
        """
        Create a new property with validation.

        Args:
            property_data: Dictionary containing property information

        Returns:
            Created property instance

        Raises:
            ValueError: If validation fails
        """
        try:
            # Create property instance for validation
            Property(**property_data).validate_all()

            created_property = await self.create(property_data, commit=commit)
            logger.info(f"Created property: {created_property.title} (ID: {created_property.id})")
            return created_property
        except ValueError as e:
            logger.error(f"Property validation failed: {e}")
            raise

    async def search_properties(
        self,
        filters: PropertySearchFilters,
        skip: int = 0,
        limit: int = 20,
        order_by: str = "created_at",
        order_direction: str = "desc"
    ) -> Tuple[List[Property], int]:
        """
        Search properties with filtering and pagination.

        Args:
            filters: PropertySearchFilters instance with search criteria
            skip: Number of records to skip for pagination
            limit: Maximum number of records to return
            order_by: Field to order by
            order_direction: 'asc' or 'desc'

        Returns:
            Tuple of (properties list, total count)
        """
        query = select(Property)
        count_query = select(func.count(Property.id))

        conditions = self._build_filter_conditions(filters)
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        total_count = (await self.db.execute(count_query)).scalar() or 0

        if hasattr(Property, order_by):
            order_field = getattr(Property, order_by)
            query = query.order_by(desc(order_field) if order_direction.lower() == "desc" else asc(order_field))
        else:
            query = query.order_by(desc(Property.created_at))

        query = query.offset(skip).limit(limit)

        result = await self.db.execute(query)
        properties = result.scalars().all()

        logger.debug(f"Property search returned {len(properties)} of {total_count} total results")
        return list(properties), total_count

    async def list_for_owner(self, owner_id: uuid.UUID) -> List[Property]:
        """Every listing of an owner, newest first, without paging."""
        query = (
            select(Property)
            .where(Property.owner_id == owner_id)
            .order_by(desc(Property.created_at))
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    def _build_filter_conditions(self, filters: PropertySearchFilters) -> List:
        """
        Build SQLAlchemy filter conditions from search filters.
        """
        conditions = []

        if filters.owner_id:
            conditions.append(Property.owner_id == filters.owner_id)

        if filters.status:
            conditions.append(Property.status == filters.status)

        if filters.property_type:
            conditions.append(Property.property_type == filters.property_type)

        if filters.min_valuation is not None:
            conditions.append(Property.valuation >= filters.min_valuation)
        if filters.max_valuation is not None:
            conditions.append(Property.valuation <= filters.max_valuation)

        # Text search in title, address and description
        if filters.search_text:
            search_term = f"%{filters.search_text}%"
            conditions.append(
                or_(
                    Property.title.ilike(search_term),
                    Property.address.ilike(search_term),
                    Property.description.ilike(search_term)
                )
            )

        return conditions

    async def transition_if_status(
        self,
        property_id: uuid.UUID,
        expected: PropertyStatus,
        values: Dict[str, Any],
        commit: bool = True
    ) -> bool:
        """
        Update a listing only if it is still in ``expected`` status.

        Returns:
            True if the row was updated
        """
        stmt = (
            update(Property)
            .where(Property.id == property_id, Property.status == expected)
            .values(updated_at=utcnow(), **values)
        )
        result = await self.db.execute(stmt)
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()
        return result.rowcount > 0

    async def get_marketplace(
        self,
        property_type: Optional[PropertyType] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Tuple[Property, TokenIssuance]], int]:
        """
        Tokenized listings together with their token issuance.

        Returns:
            Tuple of ((property, issuance) pairs, total count)
        """
        conditions = [Property.status == PropertyStatus.TOKENIZED]
        if property_type:
            conditions.append(Property.property_type == property_type)

        query = (
            select(Property, TokenIssuance)
            .join(TokenIssuance, TokenIssuance.property_id == Property.id)
            .where(and_(*conditions))
            .order_by(desc(Property.updated_at))
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        count_query = (
            select(func.count(Property.id))
            .join(TokenIssuance, TokenIssuance.property_id == Property.id)
            .where(and_(*conditions))
        )

        total_count = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(query)
        rows = [(row[0], row[1]) for row in result.all()]

        logger.debug(f"Marketplace returned {len(rows)} of {total_count} tokenized listings")
        return rows, total_count

    async def count_by_status(self) -> Dict[str, int]:
        """Listing counts per status, zero-filled."""
        query = select(Property.status, func.count(Property.id)).group_by(Property.status)
        result = await self.db.execute(query)
        counts = {status.value: 0 for status in PropertyStatus}
        counts.update({row[0].value: row[1] for row in result.all()})
        return counts

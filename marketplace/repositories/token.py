"""
Token repositories: issuance pools and the append-only purchase ledger.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, desc
from marketplace.repositories.base import BaseRepository
from marketplace.models.token import TokenIssuance, TokenPurchase
from marketplace.database import utcnow
from typing import Optional, List, Dict, Tuple
from decimal import Decimal
import uuid
import logging

logger = logging.getLogger(__name__)


class TokenIssuanceRepository(BaseRepository[TokenIssuance]):
    """Data access for property_tokens rows."""

    def __init__(self, db: AsyncSession):
        super().__init__(TokenIssuance, db)

    async def get_by_property(self, property_id: uuid.UUID) -> Optional[TokenIssuance]:
        query = (
            select(TokenIssuance)
            .where(TokenIssuance.property_id == property_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_for_properties(self, property_ids: List[uuid.UUID]) -> Dict[uuid.UUID, TokenIssuance]:
        if not property_ids:
            return {}
        result = await self.db.execute(
            select(TokenIssuance).where(TokenIssuance.property_id.in_(property_ids))
            .execution_options(populate_existing=True)
        )
        return {issuance.property_id: issuance for issuance in result.scalars().all()}

    async def decrement_available(self, property_id: uuid.UUID, tokens: int) -> bool:
        """
        Compare-and-swap decrement of the available pool.

        The WHERE clause re-checks availability at write time, so two buyers
        racing for the last tokens cannot both succeed. Flushes only; the
        caller commits together with the purchase record.

        Returns:
            True if the pool had enough tokens and was decremented
        """
        stmt = (
            update(TokenIssuance)
            .where(
                TokenIssuance.property_id == property_id,
                TokenIssuance.available_tokens >= tokens
            )
            .values(
                available_tokens=TokenIssuance.available_tokens - tokens,
                updated_at=utcnow()
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        decremented = result.rowcount == 1
        logger.debug(f"Decrement of {tokens} tokens for property {property_id}: {decremented}")
        return decremented


class TokenPurchaseRepository(BaseRepository[TokenPurchase]):
    """Data access for token_purchases rows. Records are never updated or deleted."""

    def __init__(self, db: AsyncSession):
        super().__init__(TokenPurchase, db)

    async def list_for_buyer(self, buyer_id: uuid.UUID) -> List[TokenPurchase]:
        result = await self.db.execute(
            select(TokenPurchase)
            .where(TokenPurchase.buyer_id == buyer_id)
            .order_by(desc(TokenPurchase.purchased_at))
        )
        return list(result.scalars().all())

    async def list_for_property(self, property_id: uuid.UUID) -> List[TokenPurchase]:
        result = await self.db.execute(
            select(TokenPurchase)
            .where(TokenPurchase.property_id == property_id)
            .order_by(desc(TokenPurchase.purchased_at))
        )
        return list(result.scalars().all())

    async def list_for_properties(self, property_ids: List[uuid.UUID]) -> List[TokenPurchase]:
        if not property_ids:
            return []
        result = await self.db.execute(
            select(TokenPurchase)
            .where(TokenPurchase.property_id.in_(property_ids))
            .order_by(desc(TokenPurchase.purchased_at))
        )
        return list(result.scalars().all())

    async def totals(self) -> Tuple[int, Decimal]:
        """(tokens sold, revenue) across the whole ledger."""
        query = select(
            func.coalesce(func.sum(TokenPurchase.tokens_purchased), 0),
            func.coalesce(func.sum(TokenPurchase.total_amount), 0)
        )
        row = (await self.db.execute(query)).one()
        return int(row[0]), Decimal(str(row[1]))

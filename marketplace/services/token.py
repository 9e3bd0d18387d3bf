"""
Token purchase accounting.

A purchase decrements the property's available pool with a compare-and-swap
update and appends the purchase record in the same transaction, so the ledger
always satisfies: sum(tokens purchased) == total_tokens - available_tokens.
"""

from typing import List, Optional
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.config import settings
from marketplace.database import utcnow
from marketplace.models.property import PropertyStatus
from marketplace.models.token import TokenPurchase
from marketplace.models.user import User
from marketplace.repositories.property import PropertyRepository
from marketplace.repositories.token import TokenIssuanceRepository, TokenPurchaseRepository
from marketplace.utils.exceptions import (
    PropertyNotFoundError,
    PropertyStatusError,
    TokenRangeError,
    InsufficientFundsError,
    InsufficientPermissionsError,
)
import uuid
import logging

logger = logging.getLogger(__name__)


class TokenService:
    """Purchases against a property's fixed token pool."""

    def __init__(self, db_session: AsyncSession, wallet_balance: Optional[Decimal] = None):
        self.db = db_session
        self.property_repo = PropertyRepository(db_session)
        self.issuance_repo = TokenIssuanceRepository(db_session)
        self.purchase_repo = TokenPurchaseRepository(db_session)
        # Stub wallet: a fixed balance, not a ledger
        self.wallet_balance = wallet_balance if wallet_balance is not None else settings.mock_wallet_balance

    async def purchase(self, buyer: User, property_id: uuid.UUID, tokens_requested: int) -> TokenPurchase:
        """
        Buy tokens at the issuance's current price.

        Args:
            buyer: Authenticated buyer
            property_id: Tokenized property
            tokens_requested: Integer in 1..available_tokens

        Returns:
            The created purchase record

        Raises:
            PropertyNotFoundError: If the property doesn't exist
            PropertyStatusError: If the property is not tokenized
            TokenRangeError: If tokens_requested is outside 1..available (nothing written)
            InsufficientFundsError: If the total exceeds the wallet balance (nothing written)
        """
        property_obj = await self.property_repo.get_by_id(property_id)
        if property_obj is None:
            raise PropertyNotFoundError(str(property_id))

        issuance = await self.issuance_repo.get_by_property(property_id)
        if property_obj.status != PropertyStatus.TOKENIZED or issuance is None:
            raise PropertyStatusError("Tokens can only be bought for tokenized properties")

        if isinstance(tokens_requested, bool) or not isinstance(tokens_requested, int):
            raise TokenRangeError(tokens_requested, issuance.available_tokens)

        if tokens_requested < 1 or tokens_requested > issuance.available_tokens:
            logger.warning(
                f"Out-of-range purchase by {buyer.email}: {tokens_requested} requested, "
                f"{issuance.available_tokens} available for property {property_id}"
            )
            raise TokenRangeError(tokens_requested, issuance.available_tokens)

        price_per_token = issuance.price_per_token
        total_amount = price_per_token * tokens_requested

        if total_amount > self.wallet_balance:
            logger.warning(f"Insufficient funds for {buyer.email}: {total_amount} > {self.wallet_balance}")
            raise InsufficientFundsError(str(total_amount), str(self.wallet_balance))

        try:
            decremented = await self.issuance_repo.decrement_available(property_id, tokens_requested)
            if not decremented:
                # Another purchase took the tokens between our read and write
                await self.db.rollback()
                current = await self.issuance_repo.get_by_property(property_id)
                raise TokenRangeError(tokens_requested, current.available_tokens if current else 0)

            purchase = await self.purchase_repo.create(
                {
                    "buyer_id": buyer.id,
                    "property_id": property_id,
                    "tokens_purchased": tokens_requested,
                    "price_per_token": price_per_token,
                    "total_amount": total_amount,
                    "purchased_at": utcnow(),
                },
                commit=False
            )
            await self.db.commit()
        except TokenRangeError:
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Purchase of {tokens_requested} tokens for property {property_id} failed: {e}")
            raise

        logger.info(
            f"{buyer.email} bought {tokens_requested} tokens of property {property_id} "
            f"at {price_per_token} (total {total_amount})"
        )
        return purchase

    async def list_for_buyer(self, buyer: User) -> List[TokenPurchase]:
        return await self.purchase_repo.list_for_buyer(buyer.id)

    async def list_for_property(self, property_id: uuid.UUID, viewer: User) -> List[TokenPurchase]:
        """
        Purchases of a property, visible to its owner and admins.

        Raises:
            InsufficientPermissionsError: If the viewer is neither owner nor admin
        """
        property_obj = await self.property_repo.get_by_id(property_id)
        if property_obj is None:
            raise PropertyNotFoundError(str(property_id))
        if property_obj.owner_id != viewer.id and not viewer.is_admin:
            raise InsufficientPermissionsError("view purchases of this property")
        return await self.purchase_repo.list_for_property(property_id)

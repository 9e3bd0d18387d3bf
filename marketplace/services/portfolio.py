"""
Derived portfolio values.

Everything here is recomputed from issuances and purchase records on each
read and never stored, so repeated reads without an intervening purchase
return identical results.
"""

from typing import Dict, List
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.models.property import PropertyStatus
from marketplace.models.user import User
from marketplace.models.verification import VerificationStatus
from marketplace.repositories.property import PropertyRepository
from marketplace.repositories.token import TokenIssuanceRepository, TokenPurchaseRepository
from marketplace.repositories.user import UserRepository
from marketplace.repositories.verification import VerificationRepository
import logging

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
RATIO_PLACES = Decimal("0.000001")


def ownership_pct(user_tokens: int, total_tokens: int) -> Decimal:
    """Held tokens over total supply, as a fraction in 0..1."""
    if total_tokens <= 0:
        return Decimal("0")
    return (Decimal(user_tokens) / Decimal(total_tokens)).quantize(RATIO_PLACES, rounding=ROUND_HALF_UP)


def current_value(valuation: Decimal, user_tokens: int, total_tokens: int) -> Decimal:
    """Share of the property valuation represented by the held tokens."""
    if total_tokens <= 0:
        return Decimal("0.00")
    value = Decimal(valuation) * Decimal(user_tokens) / Decimal(total_tokens)
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def roi(value: Decimal, total_invested: Decimal) -> Decimal:
    """(current value - invested) / invested; 0 when nothing was invested."""
    if total_invested <= 0:
        return Decimal("0")
    return ((Decimal(value) - Decimal(total_invested)) / Decimal(total_invested)).quantize(
        RATIO_PLACES, rounding=ROUND_HALF_UP
    )


class PortfolioService:
    """Buyer portfolio, seller earnings and the admin overview."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.property_repo = PropertyRepository(db_session)
        self.issuance_repo = TokenIssuanceRepository(db_session)
        self.purchase_repo = TokenPurchaseRepository(db_session)
        self.user_repo = UserRepository(db_session)
        self.verification_repo = VerificationRepository(db_session)

    async def buyer_portfolio(self, buyer: User) -> dict:
        """Holdings per property plus totals."""
        purchases = await self.purchase_repo.list_for_buyer(buyer.id)

        grouped: Dict = {}
        for purchase in purchases:
            entry = grouped.setdefault(purchase.property_id, {"tokens": 0, "invested": Decimal("0")})
            entry["tokens"] += purchase.tokens_purchased
            entry["invested"] += purchase.total_amount

        property_ids = list(grouped)
        issuances = await self.issuance_repo.get_for_properties(property_ids)
        properties = {p.id: p for p in await self.property_repo.get_multi(filters={"id": property_ids}, limit=len(property_ids) or 1)}

        holdings: List[dict] = []
        total_invested = Decimal("0.00")
        total_value = Decimal("0.00")

        for property_id, entry in grouped.items():
            issuance = issuances.get(property_id)
            property_obj = properties.get(property_id)
            if issuance is None or property_obj is None:
                continue

            value = current_value(property_obj.valuation, entry["tokens"], issuance.total_tokens)
            invested = entry["invested"].quantize(CENTS)
            total_invested += invested
            total_value += value

            holdings.append({
                "property_id": str(property_id),
                "title": property_obj.title,
                "tokens": entry["tokens"],
                "total_tokens": issuance.total_tokens,
                "ownership_pct": ownership_pct(entry["tokens"], issuance.total_tokens),
                "total_invested": invested,
                "current_value": value,
                "roi": roi(value, invested),
            })

        holdings.sort(key=lambda h: h["property_id"])
        logger.debug(f"Computed portfolio of {buyer.email}: {len(holdings)} holdings")
        return {
            "holdings": holdings,
            "total_invested": total_invested,
            "current_value": total_value,
            "roi": roi(total_value, total_invested),
            "purchase_count": len(purchases),
        }

    async def seller_earnings(self, seller: User) -> dict:
        """Tokens sold and revenue per owned listing plus totals."""
        listings = await self.property_repo.list_for_owner(seller.id)
        property_ids = [p.id for p in listings]
        issuances = await self.issuance_repo.get_for_properties(property_ids)
        purchases = await self.purchase_repo.list_for_properties(property_ids)

        revenue_by_property: Dict = {}
        for purchase in purchases:
            revenue_by_property[purchase.property_id] = (
                revenue_by_property.get(purchase.property_id, Decimal("0")) + purchase.total_amount
            )

        rows: List[dict] = []
        total_revenue = Decimal("0.00")
        total_sold = 0

        for property_obj in listings:
            issuance = issuances.get(property_obj.id)
            if issuance is None:
                continue

            revenue = revenue_by_property.get(property_obj.id, Decimal("0")).quantize(CENTS)
            total_revenue += revenue
            total_sold += issuance.tokens_sold

            rows.append({
                "property_id": str(property_obj.id),
                "title": property_obj.title,
                "total_tokens": issuance.total_tokens,
                "tokens_sold": issuance.tokens_sold,
                "sold_pct": ownership_pct(issuance.tokens_sold, issuance.total_tokens),
                "revenue": revenue,
            })

        return {
            "listings": rows,
            "listing_count": len(listings),
            "tokenized_count": len(rows),
            "tokens_sold": total_sold,
            "total_revenue": total_revenue,
        }

    async def admin_overview(self) -> dict:
        """Platform-wide counts for the admin dashboard."""
        property_counts = await self.property_repo.count_by_status()
        tokens_sold, revenue = await self.purchase_repo.totals()

        return {
            "total_users": await self.user_repo.count(),
            "pending_verifications": await self.verification_repo.count({"status": VerificationStatus.PENDING}),
            "pending_properties": property_counts[PropertyStatus.PENDING.value],
            "approved_properties": property_counts[PropertyStatus.APPROVED.value],
            "tokenized_properties": property_counts[PropertyStatus.TOKENIZED.value],
            "properties_by_status": property_counts,
            "tokens_sold": tokens_sold,
            "total_revenue": revenue.quantize(CENTS),
        }

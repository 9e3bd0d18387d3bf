"""
Pydantic schemas for derived portfolio, earnings and overview values.
Ratios (ownership_pct, roi, sold_pct) are fractions, not percentages.
"""

from pydantic import BaseModel, Field
from typing import Dict, List
from decimal import Decimal


class Holding(BaseModel):
    property_id: str
    title: str
    tokens: int
    total_tokens: int
    ownership_pct: Decimal = Field(..., description="Held tokens / total tokens (0..1)")
    total_invested: Decimal
    current_value: Decimal = Field(..., description="valuation x tokens / total tokens")
    roi: Decimal = Field(..., description="(current value - invested) / invested")


class PortfolioResponse(BaseModel):
    holdings: List[Holding]
    total_invested: Decimal
    current_value: Decimal
    roi: Decimal
    purchase_count: int


class ListingEarnings(BaseModel):
    property_id: str
    title: str
    total_tokens: int
    tokens_sold: int
    sold_pct: Decimal
    revenue: Decimal


class EarningsResponse(BaseModel):
    listings: List[ListingEarnings]
    listing_count: int
    tokenized_count: int
    tokens_sold: int
    total_revenue: Decimal


class AdminOverviewResponse(BaseModel):
    total_users: int
    pending_verifications: int
    pending_properties: int
    approved_properties: int
    tokenized_properties: int
    properties_by_status: Dict[str, int]
    tokens_sold: int
    total_revenue: Decimal

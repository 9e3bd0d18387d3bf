"""
Pydantic schemas for token issuance and purchases.
"""

from pydantic import BaseModel, Field
from typing import List
from datetime import datetime
from decimal import Decimal


class TokenIssuanceResponse(BaseModel):
    id: str
    property_id: str
    total_tokens: int
    available_tokens: int
    tokens_sold: int
    price_per_token: Decimal
    created_at: datetime
    updated_at: datetime


class PurchaseRequest(BaseModel):
    """Buy tokens of a tokenized property at the current price."""

    property_id: str = Field(..., description="Tokenized property to buy into")
    tokens: int = Field(..., description="Number of tokens to buy (1..available)", examples=[150])


class PurchaseResponse(BaseModel):
    id: str
    buyer_id: str
    property_id: str
    tokens_purchased: int
    price_per_token: Decimal
    total_amount: Decimal
    purchased_at: datetime


class PurchaseListResponse(BaseModel):
    purchases: List[PurchaseResponse]
    total: int

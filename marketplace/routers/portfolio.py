"""
Dashboard endpoints: buyer portfolio, seller earnings and the admin overview.
Values are derived from issuances and purchases on every request.
"""

from fastapi import APIRouter, Depends
from marketplace.models.user import User
from marketplace.services.portfolio import PortfolioService
from marketplace.schemas.portfolio import PortfolioResponse, EarningsResponse, AdminOverviewResponse
from marketplace.schemas.error import get_common_error_responses
from marketplace.utils.dependencies import (
    get_current_active_user,
    get_current_admin_user,
    get_portfolio_service
)


router = APIRouter(prefix="/portfolio", tags=["Portfolio"])


@router.get(
    "",
    response_model=PortfolioResponse,
    summary="My token holdings",
    description="Ownership share, current value and ROI per property, plus totals"
)
async def buyer_portfolio(
    current_user: User = Depends(get_current_active_user),
    portfolio_service: PortfolioService = Depends(get_portfolio_service)
) -> PortfolioResponse:
    return PortfolioResponse.model_validate(await portfolio_service.buyer_portfolio(current_user))


@router.get(
    "/earnings",
    response_model=EarningsResponse,
    summary="My listing earnings",
    description="Tokens sold and revenue per tokenized listing I own"
)
async def seller_earnings(
    current_user: User = Depends(get_current_active_user),
    portfolio_service: PortfolioService = Depends(get_portfolio_service)
) -> EarningsResponse:
    return EarningsResponse.model_validate(await portfolio_service.seller_earnings(current_user))


@router.get(
    "/overview",
    response_model=AdminOverviewResponse,
    summary="Platform overview (admin)",
    responses=get_common_error_responses()
)
async def admin_overview(
    admin_user: User = Depends(get_current_admin_user),
    portfolio_service: PortfolioService = Depends(get_portfolio_service)
) -> AdminOverviewResponse:
    return AdminOverviewResponse.model_validate(await portfolio_service.admin_overview())

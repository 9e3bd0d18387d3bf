"""
Token purchase endpoints.
"""

from fastapi import APIRouter, Depends, status
from marketplace.models.user import User
from marketplace.services.token import TokenService
from marketplace.schemas.token import PurchaseRequest, PurchaseResponse, PurchaseListResponse
from marketplace.schemas.error import get_crud_error_responses
from marketplace.utils.dependencies import get_current_active_user, get_token_service, parse_uuid


router = APIRouter(prefix="/purchases", tags=["Purchases"])


@router.post(
    "",
    response_model=PurchaseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Buy tokens of a tokenized listing",
    description=(
        "Tokens must be between 1 and the available supply, and the total must not exceed "
        "the wallet balance. On failure nothing is recorded."
    ),
    responses=get_crud_error_responses()
)
async def purchase_tokens(
    purchase_data: PurchaseRequest,
    current_user: User = Depends(get_current_active_user),
    token_service: TokenService = Depends(get_token_service)
) -> PurchaseResponse:
    purchase = await token_service.purchase(
        current_user,
        parse_uuid(purchase_data.property_id, "property_id"),
        purchase_data.tokens
    )
    return PurchaseResponse.model_validate(purchase.to_dict())


@router.get(
    "/mine",
    response_model=PurchaseListResponse,
    summary="List my purchases",
    description="Newest first"
)
async def list_my_purchases(
    current_user: User = Depends(get_current_active_user),
    token_service: TokenService = Depends(get_token_service)
) -> PurchaseListResponse:
    purchases = await token_service.list_for_buyer(current_user)
    return PurchaseListResponse(
        purchases=[PurchaseResponse.model_validate(p.to_dict()) for p in purchases],
        total=len(purchases)
    )

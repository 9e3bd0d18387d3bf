"""
Property listing API endpoints: drafts, submission, admin review, token
issuance, attachments and the marketplace of tokenized listings.
"""

from fastapi import APIRouter, Depends, status, Query, UploadFile, File
from typing import Optional, List, Dict
import uuid
import logging

from marketplace.models.user import User
from marketplace.models.property import Property, PropertyType, PropertyStatus
from marketplace.models.token import TokenIssuance
from marketplace.services.property import PropertyService
from marketplace.services.token import TokenService
from marketplace.services.storage import StorageService, Bucket
from marketplace.schemas.property import (
    PropertyCreate,
    PropertyUpdate,
    PropertyApproveRequest,
    PropertyRejectRequest,
    TokenIssueRequest,
    PropertyResponse,
    PropertyListResponse
)
from marketplace.schemas.token import PurchaseResponse, PurchaseListResponse
from marketplace.schemas.error import get_crud_error_responses, get_common_error_responses
from marketplace.utils.dependencies import (
    get_current_active_user,
    get_current_admin_user,
    get_property_service,
    get_token_service,
    get_storage_service,
    parse_uuid
)
from marketplace.utils.exceptions import APIException
from marketplace.utils.pagination import page_meta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["Properties"])


def _to_response(property_obj: Property, issuance: Optional[TokenIssuance] = None) -> PropertyResponse:
    data = property_obj.to_dict()
    data["token_issuance"] = issuance.to_dict() if issuance is not None else None
    return PropertyResponse.model_validate(data)


async def _list_response(
    properties: List[Property],
    total: int,
    page: int,
    page_size: int,
    property_service: PropertyService
) -> PropertyListResponse:
    issuances: Dict[uuid.UUID, TokenIssuance] = await property_service.get_issuances(
        [p.id for p in properties if p.status == PropertyStatus.TOKENIZED]
    )
    return PropertyListResponse(
        properties=[_to_response(p, issuances.get(p.id)) for p in properties],
        **page_meta(total, page, page_size)
    )


@router.post(
    "",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a listing for review",
    description="Create a listing in 'pending'. Requires an approved identity verification.",
    responses=get_crud_error_responses()
)
async def submit_property(
    property_data: PropertyCreate,
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.submit(property_data, current_user)
    return _to_response(property_obj)


@router.post(
    "/drafts",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save a draft listing",
    description="Drafts need no verification and stay editable until submitted",
    responses=get_crud_error_responses()
)
async def create_draft(
    property_data: PropertyCreate,
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.create_draft(property_data, current_user)
    return _to_response(property_obj)


@router.get(
    "/mine",
    response_model=PropertyListResponse,
    summary="List my listings"
)
async def list_my_properties(
    status_filter: Optional[PropertyStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyListResponse:
    properties, total = await property_service.list_owner_properties(
        current_user, status=status_filter, page=page, page_size=page_size
    )
    return await _list_response(properties, total, page, page_size, property_service)


@router.get(
    "/marketplace",
    response_model=PropertyListResponse,
    summary="Browse tokenized listings",
    description="Tokenized listings with their token issuance, newest first"
)
async def marketplace(
    property_type: Optional[PropertyType] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyListResponse:
    rows, total = await property_service.marketplace(property_type=property_type, page=page, page_size=page_size)
    return PropertyListResponse(
        properties=[_to_response(property_obj, issuance) for property_obj, issuance in rows],
        **page_meta(total, page, page_size)
    )


@router.get(
    "",
    response_model=PropertyListResponse,
    summary="List all listings (admin)",
    responses=get_common_error_responses()
)
async def list_properties(
    status_filter: Optional[PropertyStatus] = Query(None, alias="status"),
    property_type: Optional[PropertyType] = Query(None),
    query: Optional[str] = Query(None, max_length=200, description="Search in title and address"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin_user: User = Depends(get_current_admin_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyListResponse:
    properties, total = await property_service.list_properties(
        status=status_filter,
        property_type=property_type,
        search_text=query,
        page=page,
        page_size=page_size
    )
    return await _list_response(properties, total, page, page_size, property_service)


@router.get(
    "/{property_id}",
    response_model=PropertyResponse,
    summary="Get a listing",
    description="Owners and admins see any status; other users only tokenized listings",
    responses=get_common_error_responses()
)
async def get_property(
    property_id: str,
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_uuid = parse_uuid(property_id, "property_id")
    property_obj = await property_service.get_property(property_uuid, current_user)
    issuance = await property_service.get_issuance(property_uuid)
    return _to_response(property_obj, issuance)


@router.patch(
    "/{property_id}",
    response_model=PropertyResponse,
    summary="Edit a draft listing",
    responses=get_crud_error_responses()
)
async def update_property(
    property_id: str,
    property_data: PropertyUpdate,
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.update_listing(
        parse_uuid(property_id, "property_id"), property_data, current_user
    )
    return _to_response(property_obj)


@router.post(
    "/{property_id}/submit",
    response_model=PropertyResponse,
    summary="Submit a draft for review",
    description="draft -> pending. Requires an approved identity verification.",
    responses=get_common_error_responses()
)
async def submit_draft(
    property_id: str,
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.submit_draft(parse_uuid(property_id, "property_id"), current_user)
    return _to_response(property_obj)


@router.post(
    "/{property_id}/approve",
    response_model=PropertyResponse,
    summary="Approve a pending listing (admin)",
    responses=get_common_error_responses()
)
async def approve_property(
    property_id: str,
    approve_data: Optional[PropertyApproveRequest] = None,
    admin_user: User = Depends(get_current_admin_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.approve(
        parse_uuid(property_id, "property_id"),
        admin_user,
        admin_notes=approve_data.admin_notes if approve_data else None
    )
    return _to_response(property_obj)


@router.post(
    "/{property_id}/reject",
    response_model=PropertyResponse,
    summary="Reject a pending listing (admin)",
    description="A non-empty reason is required",
    responses=get_common_error_responses()
)
async def reject_property(
    property_id: str,
    reject_data: PropertyRejectRequest,
    admin_user: User = Depends(get_current_admin_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.reject(
        parse_uuid(property_id, "property_id"),
        admin_user,
        reason=reject_data.reason,
        admin_notes=reject_data.admin_notes
    )
    return _to_response(property_obj)


@router.post(
    "/{property_id}/tokens",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue tokens for an approved listing (admin)",
    description="Creates the token pool and marks the listing tokenized. A second issuance fails with 409.",
    responses=get_crud_error_responses()
)
async def issue_tokens(
    property_id: str,
    issue_data: TokenIssueRequest,
    admin_user: User = Depends(get_current_admin_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj, issuance = await property_service.issue_tokens(
        parse_uuid(property_id, "property_id"),
        admin_user,
        total_tokens=issue_data.total_tokens,
        price_per_token=issue_data.price_per_token
    )
    return _to_response(property_obj, issuance)


async def _upload_and_attach(
    property_id: str,
    file: UploadFile,
    bucket: Bucket,
    field: str,
    current_user: User,
    property_service: PropertyService,
    storage: StorageService
) -> PropertyResponse:
    property_uuid = parse_uuid(property_id, "property_id")
    # Ownership and status are checked before anything is written to disk
    await property_service.check_attachable(property_uuid, current_user)

    stored = await storage.upload(current_user.id, bucket, file)
    try:
        property_obj = await property_service.attach_file(property_uuid, current_user, stored.path, field)
    except APIException:
        storage.delete(stored.path)
        raise
    return _to_response(property_obj)


@router.post(
    "/{property_id}/images",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a listing image",
    description="Stores a JPEG, PNG or WebP image and appends it to the listing's ordered image list",
    responses=get_crud_error_responses()
)
async def upload_property_image(
    property_id: str,
    file: UploadFile = File(..., description="Image file to upload"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service),
    storage: StorageService = Depends(get_storage_service)
) -> PropertyResponse:
    return await _upload_and_attach(
        property_id, file, Bucket.PROPERTY_IMAGES, "property_images",
        current_user, property_service, storage
    )


@router.post(
    "/{property_id}/documents",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload an ownership document",
    responses=get_crud_error_responses()
)
async def upload_ownership_document(
    property_id: str,
    file: UploadFile = File(..., description="PDF or image of a title deed or similar"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service),
    storage: StorageService = Depends(get_storage_service)
) -> PropertyResponse:
    return await _upload_and_attach(
        property_id, file, Bucket.PROPERTY_DOCUMENTS, "ownership_documents",
        current_user, property_service, storage
    )


@router.get(
    "/{property_id}/purchases",
    response_model=PurchaseListResponse,
    summary="Purchases of a listing",
    description="Visible to the listing owner and admins",
    responses=get_common_error_responses()
)
async def list_property_purchases(
    property_id: str,
    current_user: User = Depends(get_current_active_user),
    token_service: TokenService = Depends(get_token_service)
) -> PurchaseListResponse:
    purchases = await token_service.list_for_property(parse_uuid(property_id, "property_id"), current_user)
    return PurchaseListResponse(
        purchases=[PurchaseResponse.model_validate(p.to_dict()) for p in purchases],
        total=len(purchases)
    )

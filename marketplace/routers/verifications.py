"""
Identity verification (KYC/KYB) endpoints.
Subjects submit and track their requests; admins review them.
"""

from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from marketplace.models.user import User
from marketplace.models.verification import VerificationRequest, VerificationStatus
from marketplace.services.verification import VerificationService
from marketplace.schemas.verification import (
    VerificationSubmitRequest,
    ApproveRequest,
    RejectRequest,
    RevisionRequest,
    BulkApproveRequest,
    BulkApproveResponse,
    VerificationResponse,
    VerificationStatusResponse,
    VerificationListResponse
)
from marketplace.schemas.error import get_common_error_responses, get_crud_error_responses
from marketplace.utils.dependencies import (
    get_current_active_user,
    get_current_admin_user,
    get_verification_service,
    parse_uuid
)
from marketplace.utils.pagination import page_meta


router = APIRouter(prefix="/verifications", tags=["Verification"])


def _to_response(request: VerificationRequest) -> VerificationResponse:
    return VerificationResponse.model_validate(request.to_dict())


@router.post(
    "",
    response_model=VerificationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit identity verification",
    description="Create a pending request. Fails with 409 while an earlier request is pending or approved.",
    responses=get_crud_error_responses()
)
async def submit_verification(
    submission: VerificationSubmitRequest,
    current_user: User = Depends(get_current_active_user),
    verification_service: VerificationService = Depends(get_verification_service)
) -> VerificationResponse:
    request = await verification_service.submit(current_user, submission.data)
    return _to_response(request)


@router.get(
    "/me",
    response_model=List[VerificationResponse],
    summary="List my verification requests",
    description="Newest first"
)
async def list_my_verifications(
    current_user: User = Depends(get_current_active_user),
    verification_service: VerificationService = Depends(get_verification_service)
) -> List[VerificationResponse]:
    requests = await verification_service.list_for_user(current_user.id)
    return [_to_response(request) for request in requests]


@router.get(
    "/me/status",
    response_model=VerificationStatusResponse,
    summary="My current verification status",
    description="Status of the latest request; listings can only be submitted when it is approved"
)
async def my_verification_status(
    current_user: User = Depends(get_current_active_user),
    verification_service: VerificationService = Depends(get_verification_service)
) -> VerificationStatusResponse:
    latest = await verification_service.latest_for_user(current_user.id)
    return VerificationStatusResponse(
        user_id=str(current_user.id),
        status=latest.status if latest else None,
        request_id=str(latest.id) if latest else None,
        can_list_properties=latest is not None and latest.status == VerificationStatus.APPROVED
    )


@router.get(
    "",
    response_model=VerificationListResponse,
    summary="List verification requests (admin)",
    responses=get_common_error_responses()
)
async def list_verifications(
    status_filter: Optional[VerificationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin_user: User = Depends(get_current_admin_user),
    verification_service: VerificationService = Depends(get_verification_service)
) -> VerificationListResponse:
    requests, total = await verification_service.list_requests(
        status=status_filter, page=page, page_size=page_size
    )
    return VerificationListResponse(
        requests=[_to_response(request) for request in requests],
        **page_meta(total, page, page_size)
    )


@router.post(
    "/bulk-approve",
    response_model=BulkApproveResponse,
    summary="Approve several pending requests (admin)",
    description="Requests that are missing or no longer pending are reported as skipped",
    responses=get_common_error_responses()
)
async def bulk_approve(
    bulk_data: BulkApproveRequest,
    admin_user: User = Depends(get_current_admin_user),
    verification_service: VerificationService = Depends(get_verification_service)
) -> BulkApproveResponse:
    request_ids = [parse_uuid(request_id, "ids") for request_id in bulk_data.ids]
    approved, skipped = await verification_service.bulk_approve(request_ids, admin_user)
    return BulkApproveResponse(
        approved=[str(request_id) for request_id in approved],
        skipped=[str(request_id) for request_id in skipped]
    )


@router.get(
    "/{request_id}",
    response_model=VerificationResponse,
    summary="Get a verification request",
    description="Visible to its subject and to admins",
    responses=get_common_error_responses()
)
async def get_verification(
    request_id: str,
    current_user: User = Depends(get_current_active_user),
    verification_service: VerificationService = Depends(get_verification_service)
) -> VerificationResponse:
    request = await verification_service.get_request_for(parse_uuid(request_id, "request_id"), current_user)
    return _to_response(request)


@router.put(
    "/{request_id}",
    response_model=VerificationResponse,
    summary="Resubmit after revision",
    description="Replace the data of a needs_revision request and return it to pending",
    responses=get_crud_error_responses()
)
async def resubmit_verification(
    request_id: str,
    submission: VerificationSubmitRequest,
    current_user: User = Depends(get_current_active_user),
    verification_service: VerificationService = Depends(get_verification_service)
) -> VerificationResponse:
    request = await verification_service.resubmit(
        parse_uuid(request_id, "request_id"), current_user, submission.data
    )
    return _to_response(request)


@router.post(
    "/{request_id}/approve",
    response_model=VerificationResponse,
    summary="Approve a pending request (admin)",
    responses=get_common_error_responses()
)
async def approve_verification(
    request_id: str,
    approve_data: Optional[ApproveRequest] = None,
    admin_user: User = Depends(get_current_admin_user),
    verification_service: VerificationService = Depends(get_verification_service)
) -> VerificationResponse:
    request = await verification_service.approve(
        parse_uuid(request_id, "request_id"),
        admin_user,
        admin_notes=approve_data.admin_notes if approve_data else None
    )
    return _to_response(request)


@router.post(
    "/{request_id}/reject",
    response_model=VerificationResponse,
    summary="Reject a pending request (admin)",
    description="A non-empty reason is required. Rejection is final; the subject may file a new request.",
    responses=get_common_error_responses()
)
async def reject_verification(
    request_id: str,
    reject_data: RejectRequest,
    admin_user: User = Depends(get_current_admin_user),
    verification_service: VerificationService = Depends(get_verification_service)
) -> VerificationResponse:
    request = await verification_service.reject(
        parse_uuid(request_id, "request_id"),
        admin_user,
        reason=reject_data.reason,
        admin_notes=reject_data.admin_notes
    )
    return _to_response(request)


@router.post(
    "/{request_id}/request-revision",
    response_model=VerificationResponse,
    summary="Send a request back for revision (admin)",
    responses=get_common_error_responses()
)
async def request_revision(
    request_id: str,
    revision_data: Optional[RevisionRequest] = None,
    admin_user: User = Depends(get_current_admin_user),
    verification_service: VerificationService = Depends(get_verification_service)
) -> VerificationResponse:
    request = await verification_service.request_revision(
        parse_uuid(request_id, "request_id"),
        admin_user,
        notes=revision_data.notes if revision_data else None
    )
    return _to_response(request)

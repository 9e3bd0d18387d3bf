"""
User account endpoints: dashboard mode and admin role management.
"""

from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from marketplace.models.user import User, AppRole
from marketplace.services.auth import AuthService
from marketplace.schemas.user import (
    UserResponse,
    UserListResponse,
    ModeUpdateRequest,
    RoleUpdateRequest
)
from marketplace.schemas.error import get_common_error_responses
from marketplace.utils.dependencies import (
    get_auth_service,
    get_current_active_user,
    get_current_admin_user,
    parse_uuid
)
from marketplace.utils.pagination import page_meta


router = APIRouter(prefix="/users", tags=["Users"])


@router.patch(
    "/me/mode",
    response_model=UserResponse,
    summary="Switch dashboard mode",
    description="Switch between buyer and seller mode. Mode is a preference and grants no permissions."
)
async def update_mode(
    mode_data: ModeUpdateRequest,
    current_user: User = Depends(get_current_active_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserResponse:
    user = await auth_service.set_mode(current_user, mode_data.mode)
    return UserResponse.model_validate(user.to_dict())


@router.get(
    "",
    response_model=UserListResponse,
    summary="List users (admin)",
    responses=get_common_error_responses()
)
async def list_users(
    role: Optional[AppRole] = Query(None, description="Only users holding this role"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin_user: User = Depends(get_current_admin_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserListResponse:
    users, total = await auth_service.list_users(role=role, page=page, page_size=page_size)
    return UserListResponse(
        users=[UserResponse.model_validate(user.to_dict()) for user in users],
        **page_meta(total, page, page_size)
    )


@router.post(
    "/{user_id}/roles",
    response_model=UserResponse,
    summary="Grant a role (admin)",
    responses=get_common_error_responses()
)
async def grant_role(
    user_id: str,
    role_data: RoleUpdateRequest,
    admin_user: User = Depends(get_current_admin_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserResponse:
    user = await auth_service.grant_role(parse_uuid(user_id, "user_id"), role_data.role, admin_user)
    return UserResponse.model_validate(user.to_dict())


@router.delete(
    "/{user_id}/roles/{role}",
    response_model=UserResponse,
    summary="Revoke a role (admin)",
    description="The base 'user' role cannot be revoked, and admins cannot revoke their own admin role.",
    responses=get_common_error_responses()
)
async def revoke_role(
    user_id: str,
    role: AppRole,
    admin_user: User = Depends(get_current_admin_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserResponse:
    user = await auth_service.revoke_role(parse_uuid(user_id, "user_id"), role, admin_user)
    return UserResponse.model_validate(user.to_dict())


@router.patch(
    "/{user_id}/status",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Activate or deactivate a user (admin)",
    responses=get_common_error_responses()
)
async def update_user_status(
    user_id: str,
    is_active: bool = Query(..., description="New active flag"),
    admin_user: User = Depends(get_current_admin_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserResponse:
    user = await auth_service.update_user_status(parse_uuid(user_id, "user_id"), is_active, admin_user)
    return UserResponse.model_validate(user.to_dict())

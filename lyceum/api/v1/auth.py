"""
Account endpoints: register, login, token refresh, logout, profile and roles.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Request, status

from lyceum.api.deps import AdminUser, CurrentUser, DbSession, get_client_ip, get_user_agent
from lyceum.errors import UnauthorizedError
from lyceum.kernel.identity.identity_service import IdentityService, Session
from lyceum.schemas.auth import (
    ChangePasswordRequest,
    LogoutRequest,
    RefreshTokenRequest,
    RoleChangeRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserProfileUpdate,
    UserResponse,
)
from lyceum.schemas.common import SuccessResponse

router = APIRouter()


def _token_response(session: Optional[Session], detail: str) -> TokenResponse:
    if session is None:
        raise UnauthorizedError(detail)
    user, pair = session
    return TokenResponse(**pair.model_dump(), user=UserResponse.model_validate(user))


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(request: Request, data: UserCreate, db: DbSession):
    """Create a student account and sign it in. A taken email gives 409."""
    service = IdentityService(db)
    ip_address = get_client_ip(request)
    user = await service.register_user(
        email=data.email,
        password=data.password,
        full_name=data.full_name,
        ip_address=ip_address,
    )
    session = await service.start_session(user, ip_address=ip_address, user_agent=get_user_agent(request))
    return _token_response(session, "Registration did not produce a session")


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, data: UserLogin, db: DbSession):
    session = await IdentityService(db).authenticate(
        email=data.email,
        password=data.password,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return _token_response(session, "Invalid email or password")


@router.post("/refresh", response_model=TokenResponse)
async def refresh(data: RefreshTokenRequest, db: DbSession):
    """Swap a refresh token for a new pair; the old refresh token stops working."""
    session = await IdentityService(db).refresh_tokens(data.refresh_token)
    return _token_response(session, "Invalid or expired refresh token")


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    request: Request,
    user: CurrentUser,
    db: DbSession,
    data: Optional[LogoutRequest] = None,
):
    await IdentityService(db).logout(
        user_id=user.id,
        refresh_token=data.refresh_token if data else None,
        ip_address=get_client_ip(request),
    )
    return SuccessResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
async def read_me(user: CurrentUser):
    return user


@router.patch("/me", response_model=UserResponse)
async def update_me(request: Request, data: UserProfileUpdate, user: CurrentUser, db: DbSession):
    return await IdentityService(db).update_user(
        user_id=user.id,
        full_name=data.full_name,
        email=data.email,
        ip_address=get_client_ip(request),
    )


@router.post("/change-password", response_model=SuccessResponse)
async def change_password(request: Request, data: ChangePasswordRequest, user: CurrentUser, db: DbSession):
    changed = await IdentityService(db).change_password(
        user_id=user.id,
        current_password=data.current_password,
        new_password=data.new_password,
        ip_address=get_client_ip(request),
    )
    if not changed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    return SuccessResponse(message="Password changed; all sessions were signed out")


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def set_role(
    request: Request,
    user_id: uuid.UUID,
    data: RoleChangeRequest,
    admin: AdminUser,
    db: DbSession,
):
    """Admin only: make a user a student, instructor or admin."""
    return await IdentityService(db).change_role(
        user_id=user_id,
        new_role=data.role,
        changed_by=admin.id,
        ip_address=get_client_ip(request),
    )

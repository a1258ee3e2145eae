"""
FastAPI dependencies: database session, bearer-token users, role checks,
request metadata and pagination.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from lyceum.config import get_settings
from lyceum.database import get_db
from lyceum.kernel.identity.identity_service import IdentityService
from lyceum.kernel.identity.jwt import verify_access_token
from lyceum.kernel.models.user import User
from lyceum.logging_config import bind_actor

security = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]
BearerCredentials = Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _user_from_token(credentials: Optional[HTTPAuthorizationCredentials], db: AsyncSession) -> User:
    """Resolve a bearer token to an active user, or raise 401/403."""
    if not credentials:
        raise _unauthorized("Not authenticated")

    payload = verify_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    user = await IdentityService(db).get_user_by_id(uuid.UUID(payload.sub))
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is disabled")

    bind_actor(user.id)
    return user


async def get_current_user(credentials: BearerCredentials, db: DbSession) -> User:
    return await _user_from_token(credentials, db)




CurrentUser = Annotated[User, Depends(get_current_user)]


def _role_guard(allowed, detail: str):
    async def guard(user: CurrentUser) -> User:
        if not allowed(user):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return user
    return guard


require_staff = _role_guard(lambda user: user.is_staff, "Instructor or admin access required")
require_admin = _role_guard(lambda user: user.is_admin, "Admin access required")

StaffUser = Annotated[User, Depends(require_staff)]
AdminUser = Annotated[User, Depends(require_admin)]


def get_client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("User-Agent")


def pagination(page: int = 1, page_size: Optional[int] = None) -> tuple[int, int]:
    """Validated (page, page_size) with the configured default and ceiling."""
    settings = get_settings()
    size = page_size if page_size is not None else settings.default_page_size
    if page < 1 or size < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="page and page_size must be positive",
        )
    return page, min(size, settings.max_page_size)


Pagination = Annotated[tuple[int, int], Depends(pagination)]


def resolve_learner(user: User, user_id: Optional[uuid.UUID]) -> uuid.UUID:
    """The learner a request is about: the caller, or anyone when the caller is staff."""
    if user_id is None or user_id == user.id:
        return user.id
    if not user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to act on another learner's progress",
        )
    return user_id

"""
Signed bearer tokens (python-jose).

Access tokens carry the user's id, email and role. Refresh tokens carry only
the id; they are stored hashed and rotated on every use.
"""

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional, Type, TypeVar

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict

from lyceum.config import get_settings

ACCESS = "access"
REFRESH = "refresh"


class _Claims(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sub: str
    exp: datetime
    iat: datetime
    jti: str
    type: str


class AccessTokenPayload(_Claims):
    email: str
    role: str
    type: str = ACCESS


class RefreshTokenPayload(_Claims):
    type: str = REFRESH


ClaimsT = TypeVar("ClaimsT", bound=_Claims)


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    # Seconds until the access token expires
    expires_in: int


class JWTManager:
    """Issue and check tokens. Arguments left as None fall back to settings."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None,
        refresh_token_expire_days: Optional[int] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.access_token_expire_minutes = access_token_expire_minutes or settings.access_token_expire_minutes
        self.refresh_token_expire_days = refresh_token_expire_days or settings.refresh_token_expire_days

    def _sign(self, token_type: str, user_id: uuid.UUID, lifetime: timedelta, **claims: Any) -> tuple[str, datetime, str]:
        """Returns (token, expires_at, jti)."""
        issued = datetime.now(timezone.utc)
        expires = issued + lifetime
        jti = uuid.uuid4().hex
        body: Dict[str, Any] = {
            "sub": str(user_id),
            "type": token_type,
            "iat": issued,
            "exp": expires,
            "jti": jti,
            **claims,
        }
        return jwt.encode(body, self.secret_key, algorithm=self.algorithm), expires, jti

    def _read(self, token: str, model: Type[ClaimsT]) -> Optional[ClaimsT]:
        try:
            body = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        expected = model.model_fields["type"].default
        if body.get("type") != expected:
            return None
        return model.model_validate(body)

    def create_access_token(
        self,
        user_id: uuid.UUID,
        email: str,
        role: str,
        expires_delta: Optional[timedelta] = None,
    ) -> tuple[str, datetime, str]:
        lifetime = expires_delta or timedelta(minutes=self.access_token_expire_minutes)
        return self._sign(ACCESS, user_id, lifetime, email=email, role=role)

    def create_refresh_token(
        self,
        user_id: uuid.UUID,
        expires_delta: Optional[timedelta] = None,
    ) -> tuple[str, datetime, str]:
        lifetime = expires_delta or timedelta(days=self.refresh_token_expire_days)
        return self._sign(REFRESH, user_id, lifetime)

    def create_token_pair(self, user_id: uuid.UUID, email: str, role: str) -> TokenPair:
        access_token, access_expires, _ = self.create_access_token(user_id, email, role)
        refresh_token, _, _ = self.create_refresh_token(user_id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int((access_expires - datetime.now(timezone.utc)).total_seconds()),
        )

    def verify_access_token(self, token: str) -> Optional[AccessTokenPayload]:
        """Claims of a valid, unexpired access token; None for anything else."""
        return self._read(token, AccessTokenPayload)

    def verify_refresh_token(self, token: str) -> Optional[RefreshTokenPayload]:
        return self._read(token, RefreshTokenPayload)

    @staticmethod
    def hash_token(token: str) -> str:
        """Hex SHA-256, the form refresh tokens are stored in."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()


@lru_cache
def get_jwt_manager() -> JWTManager:
    return JWTManager()


def verify_access_token(token: str) -> Optional[AccessTokenPayload]:
    return get_jwt_manager().verify_access_token(token)

"""
Accounts: registration, password login, refresh-token rotation and the
profile/role edits that go with them. Every change is written to the
event log in the caller's transaction.
"""

import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lyceum.errors import ConflictError, NotFoundError
from lyceum.kernel.events.event_store import EventStore
from lyceum.kernel.identity.jwt import JWTManager, TokenPair
from lyceum.kernel.identity.password import hash_password, verify_password
from lyceum.kernel.models.base import as_utc, enum_value, utcnow
from lyceum.kernel.models.event_log import EventType
from lyceum.kernel.models.user import RefreshToken, User, UserRole
from lyceum.logging_config import get_logger

logger = get_logger(__name__)

Session = tuple[User, TokenPair]


def normalise_email(email: str) -> str:
    return email.strip().lower()


class IdentityService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.jwt_manager = JWTManager()
        self.event_store = EventStore(session)

    # Lookups

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == normalise_email(email)))
        return result.scalar_one_or_none()

    async def _require_user(self, user_id: uuid.UUID) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def _audit(
        self,
        event_type: EventType,
        subject_id: uuid.UUID,
        payload: Dict[str, Any],
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        await self.event_store.log(
            event_type=event_type,
            entity_type="user",
            entity_id=subject_id,
            user_id=actor_id or subject_id,
            payload=payload,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    # Registration and sessions

    async def register_user(
        self,
        email: str,
        password: str,
        full_name: str,
        role: UserRole = UserRole.STUDENT,
        ip_address: Optional[str] = None,
    ) -> User:
        """Create an account. Emails are unique case-insensitively (ConflictError)."""
        if await self.get_user_by_email(email) is not None:
            raise ConflictError("Email already registered")

        user = User(
            email=normalise_email(email),
            password_hash=hash_password(password),
            full_name=full_name.strip(),
            role=role,
        )
        self.session.add(user)
        await self.session.flush()

        await self._audit(
            EventType.USER_REGISTERED,
            user.id,
            {"email": user.email, "role": enum_value(user.role)},
            ip_address=ip_address,
        )
        logger.info("User registered", extra={"user_id": str(user.id), "role": enum_value(user.role)})
        return user

    def _issue_tokens(self, user: User) -> TokenPair:
        """New access/refresh pair; the refresh token is stored hashed."""
        pair = self.jwt_manager.create_token_pair(user.id, user.email, enum_value(user.role))
        expires_at = utcnow() + timedelta(days=self.jwt_manager.refresh_token_expire_days)
        self.session.add(
            RefreshToken(
                user_id=user.id,
                token_hash=JWTManager.hash_token(pair.refresh_token),
                expires_at=expires_at,
            )
        )
        return pair

    async def authenticate(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[Session]:
        """(user, tokens) for valid credentials of an active account, else None."""
        user = await self.get_user_by_email(email)
        if user is None or not user.is_active:
            return None
        if not verify_password(password, user.password_hash):
            logger.info("Failed login", extra={"user_id": str(user.id)})
            return None

        return await self.start_session(user, ip_address=ip_address, user_agent=user_agent)

    async def start_session(
        self,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Session:
        """Issue tokens for an already verified user and record the login."""
        tokens = self._issue_tokens(user)
        await self._audit(
            EventType.USER_LOGGED_IN,
            user.id,
            {"method": "password"},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return user, tokens

    async def _live_refresh_tokens(
        self, user_id: Optional[uuid.UUID] = None, token_hash: Optional[str] = None
    ) -> List[RefreshToken]:
        query = select(RefreshToken).where(RefreshToken.revoked.is_(False))
        if user_id is not None:
            query = query.where(RefreshToken.user_id == user_id)
        if token_hash is not None:
            query = query.where(RefreshToken.token_hash == token_hash)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def refresh_tokens(self, refresh_token: str) -> Optional[Session]:
        """Trade a live refresh token for a new pair. Each refresh token works once."""
        claims = self.jwt_manager.verify_refresh_token(refresh_token)
        if claims is None:
            return None

        now = utcnow()
        records = await self._live_refresh_tokens(token_hash=JWTManager.hash_token(refresh_token))
        record = next((r for r in records if as_utc(r.expires_at) > now), None)
        if record is None:
            return None

        user = await self.get_user_by_id(uuid.UUID(claims.sub))
        if user is None or not user.is_active:
            return None

        _revoke(record)
        return user, self._issue_tokens(user)

    async def logout(
        self,
        user_id: uuid.UUID,
        refresh_token: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """Revoke one refresh token, or every live one the user holds."""
        token_hash = JWTManager.hash_token(refresh_token) if refresh_token else None
        for record in await self._live_refresh_tokens(user_id=user_id, token_hash=token_hash):
            _revoke(record)

        await self._audit(
            EventType.USER_LOGGED_OUT,
            user_id,
            {"revoke_all": refresh_token is None},
            ip_address=ip_address,
        )

    # Account edits

    async def update_user(
        self,
        user_id: uuid.UUID,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> User:
        user = await self._require_user(user_id)
        changes: Dict[str, Any] = {}

        if full_name is not None:
            user.full_name = changes["full_name"] = full_name.strip()

        if email is not None:
            owner = await self.get_user_by_email(email)
            if owner is not None and owner.id != user_id:
                raise ConflictError("Email already in use")
            user.email = changes["email"] = normalise_email(email)

        if changes:
            await self._audit(EventType.USER_UPDATED, user_id, changes, ip_address=ip_address)
        return user

    async def change_password(
        self,
        user_id: uuid.UUID,
        current_password: str,
        new_password: str,
        ip_address: Optional[str] = None,
    ) -> bool:
        """False when the current password does not match. Success signs out every session."""
        user = await self.get_user_by_id(user_id)
        if user is None or not verify_password(current_password, user.password_hash):
            return False

        user.password_hash = hash_password(new_password)
        await self.logout(user_id, ip_address=ip_address)
        return True

    async def change_role(
        self,
        user_id: uuid.UUID,
        new_role: UserRole,
        changed_by: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> User:
        user = await self._require_user(user_id)
        old_role = enum_value(user.role)
        user.role = new_role

        payload = {"old_role": old_role, "new_role": new_role.value}
        await self._audit(
            EventType.USER_ROLE_CHANGED,
            user_id,
            payload,
            actor_id=changed_by,
            ip_address=ip_address,
        )
        logger.info("User role changed", extra={"user_id": str(user_id), **payload})
        return user


def _revoke(record: RefreshToken) -> None:
    record.revoked = True
    record.revoked_at = utcnow()

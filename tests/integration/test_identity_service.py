"""Integration tests for IdentityService."""

import uuid

import pytest

from lyceum.errors import ConflictError, NotFoundError
from lyceum.kernel.identity.identity_service import IdentityService
from lyceum.kernel.models import UserRole


class TestRegistrationAndLogin:
    """Registration, login and token rotation."""

    @pytest.mark.asyncio
    async def test_register_normalises_email(self, db_session):
        user = await IdentityService(db_session).register_user(
            email="  Hypatia@Example.com ", password="SecurePass123", full_name=" Hypatia "
        )
        assert user.email == "hypatia@example.com"
        assert user.full_name == "Hypatia"
        assert user.role == UserRole.STUDENT

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, db_session):
        service = IdentityService(db_session)
        await service.register_user("dup@example.com", "SecurePass123", "First User")
        with pytest.raises(ConflictError):
            await service.register_user("DUP@example.com", "AnotherPass123", "Second User")

    @pytest.mark.asyncio
    async def test_authenticate(self, db_session, student):
        service = IdentityService(db_session)
        result = await service.authenticate("student@example.com", "TestPassword123")
        assert result is not None
        user, tokens = result
        assert user.id == student.id
        assert tokens.access_token and tokens.refresh_token

        assert await service.authenticate("student@example.com", "WrongPassword1") is None
        assert await service.authenticate("nobody@example.com", "TestPassword123") is None

    @pytest.mark.asyncio
    async def test_inactive_user_cannot_login(self, db_session, student):
        student.is_active = False
        assert await IdentityService(db_session).authenticate("student@example.com", "TestPassword123") is None

    @pytest.mark.asyncio
    async def test_refresh_rotates_tokens(self, db_session, student):
        service = IdentityService(db_session)
        _, tokens = await service.authenticate("student@example.com", "TestPassword123")
        await db_session.flush()

        refreshed = await service.refresh_tokens(tokens.refresh_token)
        assert refreshed is not None
        await db_session.flush()

        # The old refresh token is revoked after one use
        assert await service.refresh_tokens(tokens.refresh_token) is None

    @pytest.mark.asyncio
    async def test_logout_revokes_refresh_tokens(self, db_session, student):
        service = IdentityService(db_session)
        _, tokens = await service.authenticate("student@example.com", "TestPassword123")
        await db_session.flush()

        await service.logout(student.id)
        await db_session.flush()
        assert await service.refresh_tokens(tokens.refresh_token) is None


class TestAccountManagement:
    """Profile edits, password changes and roles."""

    @pytest.mark.asyncio
    async def test_update_profile(self, db_session, student, other_student):
        service = IdentityService(db_session)
        user = await service.update_user(student.id, full_name="Socrates")
        assert user.full_name == "Socrates"

        with pytest.raises(ConflictError):
            await service.update_user(student.id, email="other@example.com")

    @pytest.mark.asyncio
    async def test_change_password(self, db_session, student):
        service = IdentityService(db_session)
        assert await service.change_password(student.id, "WrongPassword1", "NewPassword123") is False
        assert await service.change_password(student.id, "TestPassword123", "NewPassword123") is True
        assert await service.authenticate("student@example.com", "NewPassword123") is not None

    @pytest.mark.asyncio
    async def test_change_role(self, db_session, student, admin):
        service = IdentityService(db_session)
        user = await service.change_role(student.id, UserRole.INSTRUCTOR, changed_by=admin.id)
        assert user.role == UserRole.INSTRUCTOR
        assert user.is_staff is True

        with pytest.raises(NotFoundError):
            await service.change_role(uuid.uuid4(), UserRole.ADMIN, changed_by=admin.id)

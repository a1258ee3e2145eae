"""Unit tests for password hashing and JWT handling."""

import uuid
from datetime import timedelta

from lyceum.kernel.identity.jwt import JWTManager
from lyceum.kernel.identity.password import (
    PasswordHasher,
    hash_password,
    verify_password,
)


class TestPasswordHasher:
    """Tests for PasswordHasher."""

    def test_hash_creates_different_hashes(self):
        """Same password should create different hashes (due to salt)."""
        hash1 = PasswordHasher.hash("TestPassword123")
        hash2 = PasswordHasher.hash("TestPassword123")
        assert hash1 != hash2
        assert hash1.startswith("$2b$")

    def test_verify(self):
        hashed = hash_password("TestPassword123")
        assert verify_password("TestPassword123", hashed) is True
        assert verify_password("WrongPassword", hashed) is False

    def test_malformed_hash_does_not_verify(self):
        assert PasswordHasher.verify("TestPassword123", "not-a-bcrypt-hash") is False

    def test_long_passwords_are_truncated_consistently(self):
        long_password = "a" * 100
        hashed = hash_password(long_password)
        assert verify_password("a" * 72, hashed) is True


class TestJWTManager:
    """Tests for access/refresh token handling."""

    def test_access_token_round_trip(self, jwt_manager: JWTManager):
        user_id = uuid.uuid4()
        token, _, jti = jwt_manager.create_access_token(user_id, "plato@example.com", "STUDENT")
        payload = jwt_manager.verify_access_token(token)
        assert payload.sub == str(user_id)
        assert payload.role == "STUDENT"
        assert payload.jti == jti

    def test_refresh_token_is_not_an_access_token(self, jwt_manager: JWTManager):
        pair = jwt_manager.create_token_pair(uuid.uuid4(), "a@example.com", "STUDENT")
        assert jwt_manager.verify_access_token(pair.refresh_token) is None
        assert jwt_manager.verify_refresh_token(pair.refresh_token) is not None
        assert pair.expires_in > 0

    def test_expired_token_rejected(self, jwt_manager: JWTManager):
        token, _, _ = jwt_manager.create_access_token(
            uuid.uuid4(), "a@example.com", "STUDENT", expires_delta=timedelta(seconds=-1)
        )
        assert jwt_manager.verify_access_token(token) is None

    def test_wrong_secret_rejected(self, jwt_manager: JWTManager):
        other = JWTManager(secret_key="another-secret-key-entirely-different")
        token, _, _ = other.create_access_token(uuid.uuid4(), "a@example.com", "STUDENT")
        assert jwt_manager.verify_access_token(token) is None

    def test_hash_token_is_stable(self):
        assert JWTManager.hash_token("abc") == JWTManager.hash_token("abc")
        assert len(JWTManager.hash_token("abc")) == 64

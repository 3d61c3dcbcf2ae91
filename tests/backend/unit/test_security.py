"""
Unit tests for core.security module.
Tests password hashing, JWT token creation/validation and the account secrets.
"""
import pytest
import datetime as dt
from confdesk.core.security import (
    hash_password,
    verify_password,
    create_access_token,
    decode_access_token,
    generate_password,
    is_expired,
    new_reset_otp,
    new_verification_token,
    ACCESS_TOKEN_EXPIRE_MINUTES,
)


class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_hash_password_returns_different_hash_each_time(self):
        """Password hashing should produce different hashes (salt included)."""
        password = "TestPassword123"
        assert hash_password(password) != hash_password(password)

    def test_hash_password_produces_valid_hash(self):
        password = "TestPassword123"
        hashed = hash_password(password)
        assert isinstance(hashed, str)
        assert hashed != password  # Should not be plain text
        assert hashed.startswith("$argon2")

    def test_verify_password_correct_password(self):
        hashed = hash_password("TestPassword123")
        assert verify_password("TestPassword123", hashed) is True

    def test_verify_password_incorrect_password(self):
        hashed = hash_password("TestPassword123")
        assert verify_password("WrongPassword456", hashed) is False


class TestJWTTokens:
    """Tests for JWT token creation and validation."""

    def test_token_carries_subject_and_role(self):
        token = create_access_token("user-123", "Author")
        payload = decode_access_token(token)
        assert payload["sub"] == "user-123"
        assert payload["role"] == "Author"

    def test_optional_claims_are_included_when_given(self):
        token = create_access_token("user-1", "Editor", email="ed@example.com", username="ed")
        payload = decode_access_token(token)
        assert payload["email"] == "ed@example.com"
        assert payload["username"] == "ed"

    def test_optional_claims_are_omitted_by_default(self):
        payload = decode_access_token(create_access_token("user-1", "Editor"))
        assert "email" not in payload
        assert "username" not in payload

    def test_token_expiration_time(self):
        """Token expiration should match configured time."""
        payload = decode_access_token(create_access_token("user-time", "Author"))
        diff_minutes = (payload["exp"] - payload["iat"]) / 60
        assert abs(diff_minutes - ACCESS_TOKEN_EXPIRE_MINUTES) < 1

    def test_decode_access_token_invalid_token(self):
        import jwt
        with pytest.raises(jwt.PyJWTError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_secret(self):
        import jwt
        token = create_access_token("user-secret", "Author")
        with pytest.raises(jwt.InvalidSignatureError):
            jwt.decode(token, "wrong-secret", algorithms=["HS256"])


class TestAccountSecrets:

    def test_verification_token_is_64_hex_chars(self):
        token = new_verification_token()
        assert len(token) == 64
        int(token, 16)

    def test_reset_otp_is_six_digits(self):
        for _ in range(50):
            otp = new_reset_otp()
            assert len(otp) == 6 and otp.isdigit()
            assert not otp.startswith("0")

    def test_generated_password_length(self):
        assert len(generate_password()) == 10
        assert len(generate_password(16)) == 16


class TestExpiry:

    def test_missing_expiry_counts_as_expired(self):
        assert is_expired(None) is True

    def test_future_and_past(self):
        now = dt.datetime.now(dt.timezone.utc)
        assert is_expired(now + dt.timedelta(minutes=5)) is False
        assert is_expired(now - dt.timedelta(seconds=1)) is True

    def test_naive_datetime_is_read_as_utc(self):
        naive_future = dt.datetime.utcnow() + dt.timedelta(minutes=5)
        assert is_expired(naive_future) is False

# confdesk/core/security.py
"""
Security module for authentication and authorization.
Handles password hashing, JWT token creation/validation and the random
secrets used by the account flows (verification tokens, reset OTPs,
generated credentials).
"""
import os
import secrets
import string
import datetime as dt
import jwt  # PyJWT
from passlib.context import CryptContext
from dotenv import load_dotenv
from pathlib import Path

# Load environment variables from project root
ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(dotenv_path=ENV_PATH)

# Password hashing context (Argon2 only)
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)

# JWT configuration
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")  # Use a strong secret in production
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))  # 24h sessions
JWT_ALG = "HS256"

_PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"


def hash_password(plain: str) -> str:
    """
    Hash a plain text password using Argon2.

    Args:
        plain: Plain text password to hash

    Returns:
        Hashed password string (safe to store in database)
    """
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verify a plain text password against a hashed password.

    Returns:
        True if password matches, False otherwise
    """
    return pwd_context.verify(plain, hashed)


def create_access_token(user_id: str, role: str, email: str | None = None, username: str | None = None) -> str:
    """
    Create a JWT access token for user authentication.

    The token carries the role so route-level authorization can be decided
    without an extra query; the user row is still loaded by the
    `get_current_user` dependency.

    Token payload includes:
        - sub: Subject (user ID)
        - role: Author / Editor / Reviewer / Admin
        - email, username: convenience claims for the frontend
        - iat / exp: Issued at / expiration timestamps
    """
    now = dt.datetime.utcnow()
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + dt.timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    if email:
        payload["email"] = email
    if username:
        payload["username"] = username
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_access_token(token: str) -> dict:
    """
    Decode and validate a JWT access token.

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid or malformed
    """
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])


def new_verification_token() -> str:
    """64 hex chars, used in the email verification link."""
    return secrets.token_hex(32)


def new_reset_otp() -> str:
    """Six digit one-time code for password reset."""
    return f"{secrets.randbelow(900000) + 100000}"


def generate_password(length: int = 10) -> str:
    """Random password for accounts created by an editor or admin."""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def is_expired(expires_at: dt.datetime | None) -> bool:
    """True when the expiry is missing or in the past. Naive values are read as UTC."""
    if expires_at is None:
        return True
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=dt.timezone.utc)
    return expires_at <= utc_now()

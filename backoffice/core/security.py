"""Security utilities: password hashing, one-time token hashing, and JWT helpers."""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from backoffice.core.config import get_settings

settings = get_settings()

# ── Password hashing (Argon2) ────────────────────────────────

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def placeholder_password_hash() -> str:
    """Hash of a random secret nobody ever sees.

    Accounts created on someone else's behalf get this until the owner
    completes first access, so password login is impossible meanwhile.
    """
    return hash_password(secrets.token_hex(32))


# ── One-time token hashing (SHA-256, deterministic for lookups) ──

def hash_token(raw_token: str) -> str:
    """One-way SHA-256 hash for credential token storage.

    SHA-256 (not Argon2) because tokens are looked up by their hash.
    The raw token has 256 bits of entropy, so brute-force is infeasible.
    """
    return hashlib.sha256(raw_token.encode()).hexdigest()


def generate_token() -> str:
    """Generate a cryptographically secure 256-bit token."""
    return secrets.token_urlsafe(32)


# ── JWT ───────────────────────────────────────────────────────

def _get_secret() -> str:
    if not settings.jwt_secret_key:
        raise RuntimeError("JWT_SECRET_KEY is not configured")
    return settings.jwt_secret_key


def create_jwt(
    subject: str,
    email: str,
    is_superuser: bool,
    must_reset_password: bool,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    )
    payload = {
        "sub": subject,
        "email": email,
        "su": is_superuser,
        "mrp": must_reset_password,
        "exp": expire,
    }
    return jwt.encode(payload, _get_secret(), algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jose.JWTError on failure."""
    return jwt.decode(token, _get_secret(), algorithms=[settings.jwt_algorithm])

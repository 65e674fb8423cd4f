"""Password hashing and JWT helper utilities."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import jwt
from passlib.context import CryptContext

from storefront.core.concurrency import run_in_thread_security
from storefront.core.config import settings

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Return True if the plain password matches the stored hash."""

    return pwd_context.verify(plain_password, hashed_password)


async def verify_password_async(plain: str, hashed: str) -> bool:
    """Verify the provided password hash in a background thread."""

    return await run_in_thread_security(verify_password, plain, hashed)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


async def get_password_hash_async(plain: str) -> str:
    """Hash a password in a background thread to avoid blocking the loop."""

    return await run_in_thread_security(get_password_hash, plain)


# JWT helpers
ALGORITHM = "HS256"


def create_access_token(subject: str, extra: Dict[str, Any] | None = None) -> str:
    now = datetime.now(timezone.utc)
    minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES or 15
    to_encode: Dict[str, Any] = dict(extra or {})
    to_encode.update(
        {
            "sub": subject,
            "type": "access",
            "exp": now + timedelta(minutes=minutes),
            "iat": now,
            "nbf": now,
            "iss": settings.JWT_ISSUER,
            "aud": settings.JWT_AUDIENCE,
        }
    )
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and verify a token; raises ``jose.JWTError`` when invalid."""

    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[ALGORITHM],
        audience=settings.JWT_AUDIENCE,
        issuer=settings.JWT_ISSUER,
    )

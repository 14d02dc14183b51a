"""
Security utilities for authentication and authorization

JWT token management and password hashing.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

TOKEN_KIND_USER = "user"
TOKEN_KIND_ADMIN = "admin"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(password)


def token_lifetime(kind: str) -> timedelta:
    """Admins get shorter-lived tokens than regular users"""
    if kind == TOKEN_KIND_ADMIN:
        return timedelta(minutes=settings.admin_token_expire_minutes)
    return timedelta(minutes=settings.user_token_expire_minutes)


def create_access_token(
    subject: str, kind: str = TOKEN_KIND_USER, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create JWT access token

    Args:
        subject: Account id stored in the ``sub`` claim
        kind: Principal kind, ``user`` or ``admin``
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else token_lifetime(kind))

    to_encode = {
        "sub": str(subject),
        "kind": kind,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }

    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """
    Decode and validate JWT token

    Returns:
        Decoded payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
        return payload
    except JWTError:
        return None


def verify_token(token: str) -> Optional[tuple[str, str]]:
    """
    Verify token and extract the principal

    Returns:
        (account id, kind) if valid, None otherwise
    """
    payload = decode_token(token)
    if payload is None:
        return None

    subject: Optional[str] = payload.get("sub")
    if not subject:
        return None
    return subject, payload.get("kind", TOKEN_KIND_USER)


def extract_bearer(value: Optional[str]) -> Optional[str]:
    """Accept either ``Bearer <token>`` or a bare token"""
    if not value:
        return None
    parts = value.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    if len(parts) == 1:
        return parts[0]
    return None

"""
Authentication for CaseBridge.

Implements:
- Password hashing with Argon2id
- JWT access and refresh tokens

Tokens carry only the principal id. Role, firm scope and status are
resolved from the database on every request (see security.identity), so a
suspension or role change takes effect immediately.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from casebridge.config import settings

logger = logging.getLogger(__name__)


# Password hasher (Argon2id)
ph = PasswordHasher(
    time_cost=3,        # Number of iterations
    memory_cost=65536,  # 64 MB
    parallelism=4,      # Number of parallel threads
    hash_len=32,        # Hash output length
    salt_len=16,        # Salt length
)


class TokenType(str, Enum):
    """Types of JWT tokens."""
    ACCESS = "access"
    REFRESH = "refresh"


class TokenPayload(BaseModel):
    """JWT token payload. exp and iat are POSIX timestamps."""
    sub: str                          # Principal ID
    type: TokenType                   # Token type
    exp: int                          # Expiration time
    iat: int                          # Issued at
    jti: Optional[str] = None         # JWT ID

    @property
    def principal_id(self) -> UUID:
        return UUID(self.sub)


class AuthenticationError(Exception):
    """Raised when a token or credential cannot be verified."""
    pass


def hash_password(password: str) -> str:
    """
    Hash a password using Argon2id.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    return ph.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a password against its hash.

    Args:
        password: Plain text password to verify
        hashed: Hashed password to check against

    Returns:
        True if password matches, False otherwise
    """
    try:
        ph.verify(hashed, password)
        return True
    except VerifyMismatchError:
        return False
    except (VerificationError, InvalidHashError):
        logger.warning("Stored password hash could not be verified")
        return False


def _create_token(
    principal_id: UUID,
    token_type: TokenType,
    expires_delta: timedelta,
) -> str:
    now = datetime.now(timezone.utc)
    payload = TokenPayload(
        sub=str(principal_id),
        type=token_type,
        exp=int((now + expires_delta).timestamp()),
        iat=int(now.timestamp()),
        jti=uuid4().hex,
    )
    return jwt.encode(
        payload.model_dump(mode="json"),
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(principal_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        principal_id: Principal to create the token for
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    return _create_token(principal_id, TokenType.ACCESS, expires_delta)


def create_refresh_token(principal_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT refresh token."""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.refresh_token_expire_days)
    return _create_token(principal_id, TokenType.REFRESH, expires_delta)


def decode_token(token: str) -> TokenPayload:
    """
    Decode and validate a JWT token.

    Raises:
        AuthenticationError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        decoded = TokenPayload(**payload)
        UUID(decoded.sub)
        return decoded
    except (JWTError, ValidationError, ValueError) as e:
        logger.warning(f"JWT decode failed: {e}")
        raise AuthenticationError("Invalid or expired token") from e


def verify_access_token(token: str) -> TokenPayload:
    """
    Verify an access token.

    Raises:
        AuthenticationError: If token is invalid, expired, or wrong type
    """
    payload = decode_token(token)

    if payload.type != TokenType.ACCESS:
        raise AuthenticationError("Invalid token type")

    return payload


def verify_refresh_token(token: str) -> TokenPayload:
    """
    Verify a refresh token.

    Raises:
        AuthenticationError: If token is invalid, expired, or wrong type
    """
    payload = decode_token(token)

    if payload.type != TokenType.REFRESH:
        raise AuthenticationError("Invalid token type")

    return payload

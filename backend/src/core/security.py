"""
Security utilities for password hashing and JWT token management.

Admin passwords are hashed with bcrypt through passlib. Sessions are
stateless HS256 access tokens carrying the user's id, e-mail and role.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from src.core.config import get_settings
from src.core.logging import get_logger

settings = get_settings()
logger = get_logger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
    bcrypt__ident="2b",
)

ACCESS_TOKEN_TYPE = "access"


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    """Exception raised for token-related errors."""

    pass


class PasswordError(SecurityError):
    """Exception raised for password-related errors."""

    pass


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Raises:
        PasswordError: If password is empty or hashing fails

    Example:
        >>> hashed = hash_password("SecurePass123!")
        >>> verify_password("SecurePass123!", hashed)
        True
    """
    if not password:
        raise PasswordError("Password cannot be empty", code="EMPTY_PASSWORD")

    try:
        return pwd_context.hash(password)
    except Exception as e:
        logger.error(
            "Password hashing failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise PasswordError(
            "Failed to hash password",
            code="HASH_FAILED",
            original_error=str(e),
        ) from e


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Returns False for empty input or a malformed hash instead of raising,
    so callers can treat every failure as bad credentials.
    """
    if not plain_password or not hashed_password:
        return False

    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.warning(
            "Password verification failed on malformed hash",
            error=str(e),
        )
        return False


def create_access_token(
    user_id: UUID,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed JWT access token for an admin user.

    Args:
        user_id: Subject of the token
        email: User e-mail, embedded for logging and display
        role: User role at the time of issue
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT token string

    Raises:
        TokenError: If token creation fails
    """
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    claims = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": expire,
    }

    try:
        token = jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)
    except JWTError as e:
        logger.error("Failed to create access token", error=str(e))
        raise TokenError(
            "Failed to create access token",
            code="TOKEN_CREATE_FAILED",
            original_error=str(e),
        ) from e

    logger.debug("Access token created", subject=str(user_id), expires_at=expire.isoformat())
    return token


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string to decode

    Returns:
        Dictionary of decoded token claims

    Raises:
        TokenError: If token is empty, expired, malformed or not an access token
    """
    if not token:
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError as e:
        logger.info("Token has expired")
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning("Invalid token", error=str(e))
        raise TokenError(
            "Invalid token",
            code="TOKEN_INVALID",
            original_error=str(e),
        ) from e

    if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        raise TokenError("Invalid token type", code="TOKEN_TYPE_INVALID")

    return payload


def get_security_headers() -> Dict[str, str]:
    """Response headers applied to every API response."""
    headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    }
    if settings.is_production:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return headers

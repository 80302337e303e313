"""
Security utilities for password hashing and JWT access tokens.

This module provides:
- Password hashing using Argon2id (memory-hard, GPU-resistant)
- JWT access token creation and verification
- Security configuration loaded from the environment
"""

import logging
import secrets
import os
from datetime import timedelta
from typing import Optional, Dict, Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from time_utils import utc_now

logger = logging.getLogger(__name__)


def is_production_like() -> bool:
    """
    Check if the current environment is production-like (production or staging).

    Returns:
        True if ENVIRONMENT is "production" or "staging", False otherwise
    """
    env = os.environ.get("ENVIRONMENT", "development").lower()
    return env in ("production", "staging")


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

SECRET_KEY = os.environ.get("JWT_SECRET_KEY")
if not SECRET_KEY:
    if is_production_like():
        raise ValueError(
            "JWT_SECRET_KEY environment variable is required in production. "
            "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
        )
    # Tokens issued with this key stop validating when the process restarts
    SECRET_KEY = "dev-insecure-key-" + secrets.token_urlsafe(32)
    logger.warning(
        "JWT_SECRET_KEY not set! Using temporary development key. "
        "This is INSECURE for production. Set JWT_SECRET_KEY environment variable."
    )

ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

SUPPORTED_ALGORITHMS = ["HS256", "HS384", "HS512"]
if ALGORITHM not in SUPPORTED_ALGORITHMS:
    logger.warning(
        f"Unsupported JWT_ALGORITHM={ALGORITHM}. Using HS256. "
        f"Supported: {', '.join(SUPPORTED_ALGORITHMS)}"
    )
    ALGORITHM = "HS256"

DEFAULT_ACCESS_TOKEN_EXPIRE_HOURS = 24

try:
    ACCESS_TOKEN_EXPIRE_HOURS = int(
        os.environ.get("ACCESS_TOKEN_EXPIRE_HOURS", str(DEFAULT_ACCESS_TOKEN_EXPIRE_HOURS))
    )
    if ACCESS_TOKEN_EXPIRE_HOURS < 1 or ACCESS_TOKEN_EXPIRE_HOURS > 168:  # 1 hour to 7 days
        logger.warning(
            f"ACCESS_TOKEN_EXPIRE_HOURS={ACCESS_TOKEN_EXPIRE_HOURS} is outside safe range (1-168). "
            f"Using default of {DEFAULT_ACCESS_TOKEN_EXPIRE_HOURS} hours."
        )
        ACCESS_TOKEN_EXPIRE_HOURS = DEFAULT_ACCESS_TOKEN_EXPIRE_HOURS
except ValueError:
    logger.warning(
        "Invalid ACCESS_TOKEN_EXPIRE_HOURS value in environment. "
        f"Using default of {DEFAULT_ACCESS_TOKEN_EXPIRE_HOURS} hours."
    )
    ACCESS_TOKEN_EXPIRE_HOURS = DEFAULT_ACCESS_TOKEN_EXPIRE_HOURS


def hash_password(password: str) -> str:
    """
    Hash a password using Argon2id.

    Example:
        >>> hashed = hash_password("my_secure_password")
        >>> verify_password("my_secure_password", hashed)
        True
    """
    logger.debug("Hashing password")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Returns:
        True if password matches, False otherwise (including unrecognised hashes)
    """
    logger.debug("Verifying password")
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        logger.info("Stored password hash has an unrecognised format")
        return False


def create_access_token(user_id: int, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token for a user.

    Args:
        user_id: Id of the authenticated user, stored as the "sub" claim
        role: The user's role at the time of issue
        expires_delta: Optional custom lifetime, defaults to ACCESS_TOKEN_EXPIRE_HOURS

    Returns:
        Encoded JWT token string

    Example:
        >>> token = create_access_token(1, "admin")
    """
    issued_at = utc_now()
    expire = issued_at + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))

    to_encode = {
        "sub": str(user_id),
        "role": role,
        "iat": issued_at,
        "nbf": issued_at,
        "exp": expire,
        "type": "access",
    }

    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    logger.debug(f"Access token created for user {user_id}, expires at: {expire}")
    return encoded_jwt


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify and decode a JWT token.

    Signature, exp and nbf are checked by python-jose.

    Returns:
        Decoded token payload if valid, None otherwise
    """
    logger.debug("Verifying JWT token")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        logger.debug(f"Token verified successfully for user: {payload.get('sub')}")
        return payload
    except JWTError as e:
        logger.info(f"JWT verification failed: {str(e)}")
        return None

"""
FastAPI dependencies for authentication and authorization.

This module provides dependency functions that can be used in route handlers to:
- Extract and validate the current user from a Bearer JWT
- Enforce the role hierarchy (employee < head < manager < admin)
- Enforce the self-or-admin rule on user-scoped endpoints
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database import get_db
from models import User, UserRole
from auth.permissions import authorize, is_self_or_admin
from auth.security import verify_token

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme for JWT authentication
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Extract and validate the current user from a JWT Bearer token.

    The token must verify, be an access token, carry an integer "sub" claim
    and refer to a user that still exists. The role is always read from the
    database row, so a role change takes effect on the next request.

    Raises:
        HTTPException: 401 if authentication fails

    Example:
        @router.get("/api/protected")
        async def protected_route(user: User = Depends(get_current_user)):
            return {"user_id": user.id}
    """
    if not credentials or not credentials.credentials:
        logger.info("No authentication credentials provided")
        raise _unauthorized("Not authenticated")

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    token_type = payload.get("type")
    if token_type != "access":
        logger.info(f"Invalid token type: {token_type}")
        raise _unauthorized("Invalid token type")

    user_id = payload.get("sub")
    if user_id is None:
        logger.info("Token payload missing 'sub' claim")
        raise _unauthorized("Invalid token payload")

    # Malformed ids should return 401, not 500
    try:
        user_id_int = int(user_id)
    except (TypeError, ValueError):
        logger.info(f"Invalid user_id format in token: {user_id}")
        raise _unauthorized("Invalid token format")

    user = db.query(User).filter(User.id == user_id_int).first()
    if user is None:
        logger.info(f"User not found for id: {user_id}")
        raise _unauthorized("User not found")

    logger.debug(f"User authenticated via JWT: {user.username}")
    return user


def require_role(required_role: UserRole):
    """
    Create a dependency that requires a minimum role.

    Args:
        required_role: Lowest role allowed to access the endpoint

    Returns:
        Dependency function that checks the user's role

    Example:
        @router.delete("/api/tasks/{task_id}")
        async def delete_task(
            task_id: int,
            current_user: User = Depends(require_role(UserRole.head))
        ):
            pass
    """

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        """Check if the current user has the required role."""
        if not authorize(current_user.role, required_role):
            logger.info(
                f"Access denied: user {current_user.username} has role '{current_user.role.value}', "
                f"but '{required_role.value}' is required"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {required_role.value}",
            )
        return current_user

    return role_checker


async def get_current_admin(current_user: User = Depends(require_role(UserRole.admin))) -> User:
    """Shortcut for Depends(require_role(UserRole.admin))."""
    return current_user


async def require_self_or_admin(user_id: int, current_user: User = Depends(get_current_user)) -> User:
    """
    Allow the request when the path's user_id is the caller's own id, or the caller is an admin.

    Must be used on routes that declare a ``user_id`` path parameter.
    """
    if not is_self_or_admin(current_user, user_id):
        logger.info(f"Access denied: user {current_user.id} attempted to access user {user_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You can only access your own resources",
        )
    return current_user

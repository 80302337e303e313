"""
Authentication API endpoints.

This module provides REST API endpoints for:
- Login with username and password
- Reading the current user
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

import schemas
from database import get_db
from models import User
from auth.security import create_access_token
from auth.dependencies import get_current_user
from services import users as user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=schemas.Token)
async def login(request: schemas.LoginRequest, db: Session = Depends(get_db)):
    """
    Login with username and password.

    Returns:
        Bearer access token

    Raises:
        HTTPException: 401 if credentials are invalid
    """
    logger.info(f"Login attempt for username: {request.username}")

    user = user_service.authenticate(db, request.username, request.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(user.id, user.role.value)

    logger.info(f"User logged in successfully: {user.username} (ID: {user.id})")
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=schemas.User)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the currently authenticated user."""
    return current_user

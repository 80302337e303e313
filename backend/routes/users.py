import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import models
import schemas
from auth.dependencies import get_current_admin, require_self_or_admin
from database import get_db
from services import users as user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: schemas.UserCreate,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Create a new user (admin only)."""
    logger.debug(f"Admin {current_user.id} creating user: {user_data.username}")
    return user_service.create_user(
        db, user_data.username, user_data.password, user_data.role, user_data.department
    )


@router.get("", response_model=List[schemas.User])
def list_users(
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """List all users (admin only)."""
    return user_service.list_users(db)


@router.get("/role/{role}", response_model=List[schemas.User])
def get_users_by_role(
    role: str,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    return user_service.get_users_by_role(db, role)


@router.get("/department/{department}", response_model=List[schemas.User])
def get_users_by_department(
    department: str,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    return user_service.get_users_by_department(db, department)


@router.get("/{user_id}", response_model=schemas.User)
def get_user(
    user_id: int,
    current_user: models.User = Depends(require_self_or_admin),
    db: Session = Depends(get_db)
):
    """Get user by ID (admin or self)."""
    return user_service.get_user(db, user_id)


@router.get("/{user_id}/stats", response_model=schemas.UserStats)
def get_user_stats(
    user_id: int,
    current_user: models.User = Depends(require_self_or_admin),
    db: Session = Depends(get_db)
):
    """Task and project counts for a user (admin or self)."""
    return user_service.get_user_stats(db, user_id)


@router.patch("/{user_id}/role", response_model=schemas.User)
def update_user_role(
    user_id: int,
    update: schemas.UserRoleUpdate,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    logger.debug(f"Admin {current_user.id} changing role of user {user_id}")
    return user_service.update_user_role(db, user_id, update.role)


@router.patch("/{user_id}/department", response_model=schemas.User)
def update_user_department(
    user_id: int,
    update: schemas.UserDepartmentUpdate,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    return user_service.update_user_department(db, user_id, update.department)


@router.patch("/{user_id}/password", response_model=schemas.Message)
def update_user_password(
    user_id: int,
    update: schemas.UserPasswordUpdate,
    current_user: models.User = Depends(require_self_or_admin),
    db: Session = Depends(get_db)
):
    """Change a password (admin or self)."""
    user_service.update_user_password(db, user_id, update.new_password)
    return {"message": "Password updated successfully"}


@router.delete("/{user_id}", response_model=schemas.Message)
def delete_user(
    user_id: int,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Delete a user and their tasks, memberships and created projects (admin only)."""
    logger.debug(f"Admin {current_user.id} deleting user {user_id}")
    user_service.delete_user(db, user_id)
    return {"message": "User deleted successfully"}

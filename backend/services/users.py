"""
User management operations.

Every function takes the request's Session first. Authorization is enforced
by the route dependencies before these are called.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

import models
from auth.security import hash_password, verify_password
from errors import DuplicateUsernameError
from services.common import completion_rate, get_or_404, parse_enum, transaction
from services.projects import delete_project_rows

logger = logging.getLogger(__name__)


def create_user(db: Session, username: str, password: str, role: str, department: str = "") -> models.User:
    """
    Create a user account.

    Raises:
        ValidationError: if the role is not a known role
        DuplicateUsernameError: if the username is taken
    """
    logger.debug(f"Creating user {username}")
    user_role = parse_enum(models.UserRole, role, "role")

    if get_user_by_username(db, username) is not None:
        logger.info(f"User creation rejected: username already exists: {username}")
        raise DuplicateUsernameError(f"Username '{username}' already exists")

    user = models.User(
        username=username,
        password_hash=hash_password(password),
        role=user_role,
        department=department,
    )
    with transaction(db, "create user"):
        db.add(user)
    db.refresh(user)

    logger.info(f"User created: {user.username} (ID: {user.id}, role: {user.role.value})")
    return user


def get_user(db: Session, user_id: int) -> models.User:
    return get_or_404(db, models.User, user_id, "User")


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.username == username).first()


def authenticate(db: Session, username: str, password: str) -> Optional[models.User]:
    """Return the user when the credentials match, otherwise None."""
    user = get_user_by_username(db, username)
    if user is None:
        logger.info(f"Authentication failed: unknown username {username}")
        return None
    if not verify_password(password, user.password_hash):
        logger.info(f"Authentication failed: wrong password for {username}")
        return None
    return user


def _newest_first(query):
    return query.order_by(models.User.created_at.desc(), models.User.id.desc())


def list_users(db: Session) -> List[models.User]:
    return _newest_first(db.query(models.User)).all()


def get_users_by_role(db: Session, role: str) -> List[models.User]:
    user_role = parse_enum(models.UserRole, role, "role")
    return _newest_first(db.query(models.User).filter(models.User.role == user_role)).all()


def get_users_by_department(db: Session, department: str) -> List[models.User]:
    return _newest_first(db.query(models.User).filter(models.User.department == department)).all()


def update_user_role(db: Session, user_id: int, role: str) -> models.User:
    user_role = parse_enum(models.UserRole, role, "role")
    user = get_user(db, user_id)

    old_role = user.role
    with transaction(db, "update user role"):
        user.role = user_role
    db.refresh(user)

    logger.info(f"User {user_id} role changed: {old_role.value} -> {user_role.value}")
    return user


def update_user_department(db: Session, user_id: int, department: str) -> models.User:
    user = get_user(db, user_id)

    with transaction(db, "update user department"):
        user.department = department
    db.refresh(user)

    logger.info(f"User {user_id} moved to department '{department}'")
    return user


def update_user_password(db: Session, user_id: int, new_password: str) -> None:
    user = get_user(db, user_id)

    password_hash = hash_password(new_password)
    with transaction(db, "update user password"):
        user.password_hash = password_hash

    logger.info(f"Password updated for user {user_id}")


def delete_user(db: Session, user_id: int) -> None:
    """
    Delete a user and everything that hangs off them, in one transaction.

    Order:
    1. the user's project memberships
    2. projects the user created (memberships removed, tasks detached)
    3. the user's participant rows in collaborative tasks
    4. assigned_by references on other users' tasks
    5. tasks the user owns
    6. collaborative tasks the user leads, with their participants
    7. the user row

    Raises:
        NotFoundError: if the user does not exist
        StorageError: if any step fails; nothing is deleted in that case
    """
    user = get_user(db, user_id)
    logger.debug(f"Deleting user {user_id} ({user.username})")

    with transaction(db, "delete user"):
        for membership in (
            db.query(models.ProjectMembership).filter(models.ProjectMembership.user_id == user_id).all()
        ):
            db.delete(membership)
        db.flush()

        created_projects = db.query(models.Project).filter(models.Project.created_by == user_id).all()
        for project in created_projects:
            delete_project_rows(db, project)
        db.flush()

        for participant in (
            db.query(models.CollaborativeTaskParticipant)
            .filter(models.CollaborativeTaskParticipant.user_id == user_id)
            .all()
        ):
            db.delete(participant)
        db.flush()

        for task in db.query(models.Task).filter(models.Task.assigned_by == user_id).all():
            task.assigned_by = None

        for task in db.query(models.Task).filter(models.Task.user_id == user_id).all():
            db.delete(task)

        for collaborative_task in (
            db.query(models.CollaborativeTask).filter(models.CollaborativeTask.lead_user_id == user_id).all()
        ):
            db.delete(collaborative_task)
        db.flush()

        db.delete(user)

    logger.info(
        f"User {user_id} deleted along with {len(created_projects)} project(s) they created"
    )


def get_user_stats(db: Session, user_id: int) -> dict:
    """
    Summarise a user's workload.

    completion_rate covers owned tasks and led collaborative tasks together.
    """
    user = get_user(db, user_id)

    task_query = db.query(models.Task).filter(models.Task.user_id == user_id)
    collaborative_query = db.query(models.CollaborativeTask).filter(
        models.CollaborativeTask.lead_user_id == user_id
    )

    total_tasks = task_query.count()
    total_collaborative = collaborative_query.count()
    completed_tasks = task_query.filter(models.Task.status == models.TaskStatus.completed).count()
    completed_collaborative = collaborative_query.filter(
        models.CollaborativeTask.status == models.TaskStatus.completed
    ).count()
    total_projects = (
        db.query(models.ProjectMembership).filter(models.ProjectMembership.user_id == user_id).count()
    )

    return {
        "user_id": user.id,
        "username": user.username,
        "role": user.role,
        "department": user.department,
        "total_tasks": total_tasks,
        "total_collaborative_tasks": total_collaborative,
        "total_projects": total_projects,
        "completed_tasks": completed_tasks,
        "completed_collaborative_tasks": completed_collaborative,
        "completion_rate": completion_rate(
            completed_tasks + completed_collaborative, total_tasks + total_collaborative
        ),
        "created_at": user.created_at,
        "last_active": user.updated_at,
    }

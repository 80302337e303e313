"""
Role hierarchy and resource-level permission rules.

Roles form a strict total order: employee < head < manager < admin. Every
role check in the application goes through role_level() so the ordering is
defined in exactly one place.
"""

import logging

from sqlalchemy.orm import Session

from errors import NotFoundError
from models import User, Project, UserRole
from services.projects import is_project_member

logger = logging.getLogger(__name__)

_ROLE_LEVELS = {
    UserRole.employee.value: 1,
    UserRole.head.value: 2,
    UserRole.manager.value: 3,
    UserRole.admin.value: 4,
}


def role_level(role) -> int:
    """
    Map a role to its position in the hierarchy.

    Accepts either a UserRole member or its string value. Unknown roles map
    to 0, which is below every real role.
    """
    if isinstance(role, UserRole):
        role = role.value
    return _ROLE_LEVELS.get(role, 0)


def authorize(actual_role, required_role) -> bool:
    """Allow iff the actual role is at or above the required role."""
    return role_level(actual_role) >= role_level(required_role)


def is_self_or_admin(user: User, target_user_id: int) -> bool:
    """
    Check the self-or-admin rule.

    Args:
        user: The acting principal
        target_user_id: Owner of the resource being accessed

    Returns:
        True if the principal owns the resource or is an admin
    """
    if user.id == target_user_id:
        return True
    return role_level(user.role) == role_level(UserRole.admin)


def require_project_access(user: User, project_id: int, db: Session) -> Project:
    """
    Require read access to a project, or raise NotFoundError.

    Admins can read every project; everyone else must be a member. A
    non-member gets the same 404 as a missing project so that project ids
    cannot be probed.

    Returns:
        The Project row, so callers don't need to load it again
    """
    logger.debug(f"Checking access for user {user.id} to project {project_id}")

    project = db.query(Project).filter(Project.id == project_id).first()
    if project is None:
        logger.info(f"Project {project_id} not found")
        raise NotFoundError("Project not found")

    if role_level(user.role) == role_level(UserRole.admin):
        return project

    if not is_project_member(db, user.id, project_id):
        # Same response as a missing project
        logger.info(f"User {user.id} is not a member of project {project_id}, returning 404")
        raise NotFoundError("Project not found")

    return project

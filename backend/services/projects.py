"""
Project and membership operations.

A project's creator is enrolled as a "manager" member when the project is
created and cannot be removed from it afterwards.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

import models
from errors import DuplicateMembershipError, InvariantViolationError, NotFoundError, ValidationError
from services.common import completion_rate, count_by_status, get_or_404, parse_enum, transaction
from time_utils import as_utc

logger = logging.getLogger(__name__)


def is_project_member(db: Session, user_id: int, project_id: int) -> bool:
    membership = (
        db.query(models.ProjectMembership)
        .filter(
            models.ProjectMembership.user_id == user_id,
            models.ProjectMembership.project_id == project_id,
        )
        .first()
    )
    return membership is not None


def create_project(
    db: Session,
    title: str,
    description: str,
    creator_id: int,
    start_date: datetime,
    end_date: Optional[datetime] = None,
) -> models.Project:
    """
    Create a project and enrol its creator as a manager member.

    Both rows are written in one transaction.

    Raises:
        NotFoundError: if the creator does not exist
        ValidationError: if end_date is before start_date
    """
    logger.debug(f"Creating project '{title}' for user {creator_id}")
    get_or_404(db, models.User, creator_id, "User")

    start_date = as_utc(start_date)
    end_date = as_utc(end_date) if end_date is not None else None
    if end_date is not None and end_date < start_date:
        raise ValidationError("end_date must not be before start_date")

    project = models.Project(
        title=title,
        description=description,
        status=models.ProjectStatus.active,
        created_by=creator_id,
        start_date=start_date,
        end_date=end_date,
    )
    with transaction(db, "create project"):
        db.add(project)
        db.flush()
        db.add(
            models.ProjectMembership(
                project_id=project.id,
                user_id=creator_id,
                role=models.MembershipRole.manager.value,
            )
        )
    db.refresh(project)

    logger.info(f"Project created: {project.title} (ID: {project.id}) by user {creator_id}")
    return project


def get_project(db: Session, project_id: int) -> models.Project:
    return get_or_404(db, models.Project, project_id, "Project")


def get_user_projects(db: Session, user_id: int) -> List[models.Project]:
    return (
        db.query(models.Project)
        .join(models.ProjectMembership, models.ProjectMembership.project_id == models.Project.id)
        .filter(models.ProjectMembership.user_id == user_id)
        .order_by(models.Project.created_at.desc(), models.Project.id.desc())
        .all()
    )


def get_project_members(db: Session, project_id: int) -> List[dict]:
    """List a project's members with both their global role and project role."""
    get_project(db, project_id)

    rows = (
        db.query(models.ProjectMembership, models.User)
        .join(models.User, models.User.id == models.ProjectMembership.user_id)
        .filter(models.ProjectMembership.project_id == project_id)
        .order_by(models.ProjectMembership.joined_at, models.ProjectMembership.id)
        .all()
    )
    return [
        {
            "user_id": user.id,
            "username": user.username,
            "user_role": user.role,
            "department": user.department,
            "project_role": membership.role,
            "joined_at": membership.joined_at,
        }
        for membership, user in rows
    ]


def add_user_to_project(db: Session, user_id: int, project_id: int, role: str) -> models.ProjectMembership:
    """
    Raises:
        NotFoundError: if the project or user does not exist
        DuplicateMembershipError: if the user is already a member
        ValidationError: if role is not manager, head or employee
    """
    get_project(db, project_id)
    get_or_404(db, models.User, user_id, "User")

    if is_project_member(db, user_id, project_id):
        logger.info(f"User {user_id} is already a member of project {project_id}")
        raise DuplicateMembershipError("User is already a member of this project")

    membership_role = parse_enum(models.MembershipRole, role, "project role")

    membership = models.ProjectMembership(
        project_id=project_id,
        user_id=user_id,
        role=membership_role.value,
    )
    with transaction(db, "add user to project"):
        db.add(membership)
    db.refresh(membership)

    logger.info(f"User {user_id} added to project {project_id} as {membership.role}")
    return membership


def remove_user_from_project(db: Session, user_id: int, project_id: int) -> None:
    """
    Raises:
        NotFoundError: if the project does not exist or the user is not a member
        InvariantViolationError: if the user created the project
    """
    project = get_project(db, project_id)

    if project.created_by == user_id:
        logger.info(f"Refusing to remove creator {user_id} from project {project_id}")
        raise InvariantViolationError("Cannot remove the project creator")

    membership = (
        db.query(models.ProjectMembership)
        .filter(
            models.ProjectMembership.user_id == user_id,
            models.ProjectMembership.project_id == project_id,
        )
        .first()
    )
    if membership is None:
        raise NotFoundError("User is not a member of this project")

    with transaction(db, "remove user from project"):
        db.delete(membership)

    logger.info(f"User {user_id} removed from project {project_id}")


def update_project_status(db: Session, project_id: int, status: str) -> models.Project:
    project_status = parse_enum(models.ProjectStatus, status, "project status")
    project = get_project(db, project_id)

    with transaction(db, "update project status"):
        project.status = project_status
    db.refresh(project)

    logger.info(f"Project {project_id} status set to {project_status.value}")
    return project


def delete_project_rows(db: Session, project: models.Project) -> None:
    """
    Stage the deletion of a project without committing.

    Memberships are deleted; tasks and collaborative tasks are kept and
    detached from the project. Shared with user deletion, which removes the
    projects a user created inside its own transaction.
    """
    for membership in (
        db.query(models.ProjectMembership).filter(models.ProjectMembership.project_id == project.id).all()
    ):
        db.delete(membership)

    for task in db.query(models.Task).filter(models.Task.project_id == project.id).all():
        task.project = None

    for collaborative_task in (
        db.query(models.CollaborativeTask).filter(models.CollaborativeTask.project_id == project.id).all()
    ):
        collaborative_task.project = None

    db.flush()
    db.delete(project)


def delete_project(db: Session, project_id: int) -> None:
    project = get_project(db, project_id)

    with transaction(db, "delete project"):
        delete_project_rows(db, project)

    logger.info(f"Project {project_id} deleted")


def _combined_status_counts(db: Session, project_id: int) -> tuple[dict, dict]:
    regular = count_by_status(db, models.Task, models.Task.project_id == project_id)
    collaborative = count_by_status(
        db, models.CollaborativeTask, models.CollaborativeTask.project_id == project_id
    )
    combined = {key: regular[key] + collaborative[key] for key in regular}
    return regular, combined


def get_project_progress(db: Session, project_id: int) -> dict:
    """Completed share of all regular and collaborative tasks in the project."""
    get_project(db, project_id)
    _, counts = _combined_status_counts(db, project_id)

    return {
        "project_id": project_id,
        "total_tasks": counts["total"],
        "completed_tasks": counts["completed"],
        "in_progress_tasks": counts["in_progress"],
        "pending_tasks": counts["pending"],
        "progress": completion_rate(counts["completed"], counts["total"]),
    }


def get_project_statistics(db: Session, project_id: int) -> dict:
    get_project(db, project_id)
    regular, counts = _combined_status_counts(db, project_id)
    total_members = (
        db.query(models.ProjectMembership).filter(models.ProjectMembership.project_id == project_id).count()
    )

    return {
        "project_id": project_id,
        "total_members": total_members,
        "total_tasks": counts["total"],
        "regular_tasks": regular["total"],
        "collaborative_tasks": counts["total"] - regular["total"],
        "pending_tasks": counts["pending"],
        "in_progress_tasks": counts["in_progress"],
        "completed_tasks": counts["completed"],
        "cancelled_tasks": counts["cancelled"],
        "completion_rate": completion_rate(counts["completed"], counts["total"]),
    }

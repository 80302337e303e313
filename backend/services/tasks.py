"""
Regular task operations.

Status transitions are not constrained: any of the four statuses can be set
from any other, including the current one.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

import models
from auth.permissions import authorize
from errors import PermissionDeniedError, ProjectMembershipError, TaskNotFoundOrForbiddenError
from services.common import completion_rate, count_by_status, get_or_404, parse_enum, transaction
from services.projects import is_project_member
from time_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


def _check_project_membership(db: Session, user_id: int, project_id: Optional[int], message: str) -> None:
    if project_id is not None and not is_project_member(db, user_id, project_id):
        logger.info(f"User {user_id} is not a member of project {project_id}")
        raise ProjectMembershipError(message)


def _newest_first(query):
    return query.order_by(models.Task.created_at.desc(), models.Task.id.desc())


def create_task(
    db: Session,
    title: str,
    description: str,
    owner_id: int,
    project_id: Optional[int] = None,
    due_date: Optional[datetime] = None,
    priority: Optional[str] = None,
) -> models.Task:
    """
    Create a pending task owned by owner_id.

    Raises:
        NotFoundError: if the owner does not exist
        ValidationError: if priority is given and not high, medium or low
        ProjectMembershipError: if project_id is given and the owner is not a member
    """
    logger.debug(f"Creating task '{title}' for user {owner_id}")
    get_or_404(db, models.User, owner_id, "User")
    task_priority = parse_enum(models.TaskPriority, priority, "priority") if priority else None
    _check_project_membership(db, owner_id, project_id, "User is not a member of this project")

    task = models.Task(
        title=title,
        description=description,
        status=models.TaskStatus.pending,
        user_id=owner_id,
        project_id=project_id,
        priority=task_priority,
        assigned_at=utc_now(),
        due_date=as_utc(due_date) if due_date else None,
    )
    with transaction(db, "create task"):
        db.add(task)
    db.refresh(task)

    logger.info(f"Task created: {task.title} (ID: {task.id}) for user {owner_id}")
    return task


def create_task_for_user(
    db: Session,
    title: str,
    description: str,
    target_user_id: int,
    assigner_id: int,
    project_id: Optional[int] = None,
    due_date: Optional[datetime] = None,
    priority: Optional[str] = None,
) -> models.Task:
    """
    Create a task on behalf of another user.

    The assigner is re-checked here, independently of the route guard, so
    the rule holds for any caller.

    Raises:
        NotFoundError: if the target user or assigner does not exist
        PermissionDeniedError: if the assigner is an employee or head
        ValidationError: if priority is given and not high, medium or low
        ProjectMembershipError: if the target user is not a member of project_id
    """
    assigner = get_or_404(db, models.User, assigner_id, "Assigner")
    if not authorize(assigner.role, models.UserRole.manager):
        logger.info(f"User {assigner_id} ({assigner.role.value}) tried to assign a task to user {target_user_id}")
        raise PermissionDeniedError("Employees and heads cannot assign tasks to other users")

    get_or_404(db, models.User, target_user_id, "Target user")

    task_priority = parse_enum(models.TaskPriority, priority, "priority") if priority else None
    _check_project_membership(db, target_user_id, project_id, "Target user is not a member of this project")

    task = models.Task(
        title=title,
        description=description,
        status=models.TaskStatus.pending,
        user_id=target_user_id,
        project_id=project_id,
        assigned_by=assigner_id,
        priority=task_priority,
        assigned_at=utc_now(),
        due_date=as_utc(due_date) if due_date else None,
    )
    with transaction(db, "create task"):
        db.add(task)
    db.refresh(task)

    logger.info(f"Task {task.id} assigned to user {target_user_id} by user {assigner_id}")
    return task


def get_task(db: Session, task_id: int) -> models.Task:
    return get_or_404(db, models.Task, task_id, "Task")


def update_task_status(db: Session, task_id: int, status: str) -> models.Task:
    task_status = parse_enum(models.TaskStatus, status, "status")
    task = get_task(db, task_id)

    old_status = task.status
    with transaction(db, "update task status"):
        task.status = task_status
    db.refresh(task)

    logger.info(f"Task {task_id} status: {old_status.value} -> {task_status.value}")
    return task


def delete_task(db: Session, task_id: int, requester_id: int) -> None:
    """
    Delete a task owned by requester_id.

    Raises:
        TaskNotFoundOrForbiddenError: if the task is missing or owned by someone else
    """
    task = (
        db.query(models.Task)
        .filter(models.Task.id == task_id, models.Task.user_id == requester_id)
        .first()
    )
    if task is None:
        logger.info(f"Task {task_id} not found or not owned by user {requester_id}")
        raise TaskNotFoundOrForbiddenError("Task not found or access denied")

    with transaction(db, "delete task"):
        db.delete(task)

    logger.info(f"Task {task_id} deleted by user {requester_id}")


def bulk_update_task_status(db: Session, task_ids: List[int], status: str) -> int:
    """
    Set the status of many tasks with a single UPDATE.

    Unknown ids are ignored.

    Returns:
        Number of rows actually updated
    """
    task_status = parse_enum(models.TaskStatus, status, "status")

    with transaction(db, "bulk update task status"):
        updated = (
            db.query(models.Task)
            .filter(models.Task.id.in_(task_ids))
            .update(
                {models.Task.status: task_status, models.Task.updated_at: utc_now()},
                synchronize_session=False,
            )
        )

    logger.info(f"Bulk status update to {task_status.value}: {updated} of {len(task_ids)} task(s) updated")
    return updated


def get_user_tasks(db: Session, user_id: int) -> List[models.Task]:
    return _newest_first(db.query(models.Task).filter(models.Task.user_id == user_id)).all()


def get_project_tasks(db: Session, project_id: int) -> List[models.Task]:
    return _newest_first(db.query(models.Task).filter(models.Task.project_id == project_id)).all()


def get_tasks_by_status(db: Session, user_id: int, status: str) -> List[models.Task]:
    task_status = parse_enum(models.TaskStatus, status, "status")
    return _newest_first(
        db.query(models.Task).filter(models.Task.user_id == user_id, models.Task.status == task_status)
    ).all()


def get_tasks_by_department(db: Session, department: str) -> List[models.Task]:
    """Tasks owned by users in the given department (exact match)."""
    return _newest_first(
        db.query(models.Task)
        .join(models.User, models.User.id == models.Task.user_id)
        .filter(models.User.department == department)
    ).all()


def get_task_statistics(db: Session) -> dict:
    """Global status counts for regular and collaborative tasks."""
    regular = count_by_status(db, models.Task)
    collaborative = count_by_status(db, models.CollaborativeTask)

    total = regular["total"] + collaborative["total"]
    completed = regular["completed"] + collaborative["completed"]

    return {
        "regular_tasks": regular,
        "collaborative_tasks": collaborative,
        "overall": {
            "total_tasks": total,
            "completed_tasks": completed,
            "completion_rate": completion_rate(completed, total),
        },
    }

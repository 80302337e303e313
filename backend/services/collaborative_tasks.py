"""
Collaborative task and participant operations.

Every collaborative task has exactly one lead. The lead is enrolled as a
participant with role "lead" when the task is created and stays enrolled for
as long as the task exists.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

import models
from errors import (
    DuplicateParticipantError,
    InvariantViolationError,
    NotFoundError,
    ProjectMembershipError,
    TaskNotFoundOrForbiddenError,
    ValidationError,
)
from services.common import get_or_404, parse_enum, transaction
from services.projects import is_project_member
from time_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

MIN_PROGRESS = 0
MAX_PROGRESS = 100


def _newest_first(query):
    return query.order_by(models.CollaborativeTask.created_at.desc(), models.CollaborativeTask.id.desc())


def create_collaborative_task(
    db: Session,
    title: str,
    description: str,
    lead_user_id: int,
    priority: str,
    complexity: str,
    project_id: Optional[int] = None,
    due_date: Optional[datetime] = None,
) -> models.CollaborativeTask:
    """
    Create a collaborative task and enrol its lead as the first participant.

    The task row and the lead's participant row are written in one
    transaction; if either insert fails neither persists.

    Raises:
        NotFoundError: if the lead user does not exist
        ProjectMembershipError: if project_id is given and the lead is not a member
        ValidationError: if priority or complexity is invalid
    """
    logger.debug(f"Creating collaborative task '{title}' led by user {lead_user_id}")
    get_or_404(db, models.User, lead_user_id, "Lead user")

    if project_id is not None and not is_project_member(db, lead_user_id, project_id):
        logger.info(f"Lead user {lead_user_id} is not a member of project {project_id}")
        raise ProjectMembershipError("Lead user is not a member of this project")

    task_priority = parse_enum(models.TaskPriority, priority, "priority")
    task_complexity = parse_enum(models.TaskComplexity, complexity, "complexity")

    now = utc_now()
    task = models.CollaborativeTask(
        title=title,
        description=description,
        status=models.TaskStatus.pending,
        lead_user_id=lead_user_id,
        project_id=project_id,
        priority=task_priority,
        complexity=task_complexity,
        progress=MIN_PROGRESS,
        assigned_at=now,
        due_date=as_utc(due_date) if due_date else None,
    )
    with transaction(db, "create collaborative task"):
        db.add(task)
        db.flush()
        db.add(
            models.CollaborativeTaskParticipant(
                collaborative_task_id=task.id,
                user_id=lead_user_id,
                role=models.ParticipantRole.lead,
                status=models.ParticipantStatus.active,
                assigned_at=now,
            )
        )
    db.refresh(task)

    logger.info(f"Collaborative task created: {task.title} (ID: {task.id}), lead user {lead_user_id}")
    return task


def get_collaborative_task(db: Session, task_id: int) -> models.CollaborativeTask:
    task = (
        db.query(models.CollaborativeTask)
        .options(selectinload(models.CollaborativeTask.participants))
        .filter(models.CollaborativeTask.id == task_id)
        .first()
    )
    if task is None:
        logger.info(f"Collaborative task {task_id} not found")
        raise NotFoundError("Collaborative task not found")
    return task


def _find_participant(db: Session, task_id: int, user_id: int) -> Optional[models.CollaborativeTaskParticipant]:
    return (
        db.query(models.CollaborativeTaskParticipant)
        .filter(
            models.CollaborativeTaskParticipant.collaborative_task_id == task_id,
            models.CollaborativeTaskParticipant.user_id == user_id,
        )
        .first()
    )


def add_participant(
    db: Session, task_id: int, user_id: int, role: str, contribution: str = ""
) -> models.CollaborativeTaskParticipant:
    """
    Raises:
        NotFoundError: if the task or user does not exist
        DuplicateParticipantError: if the user already participates
        ValidationError: if role is not lead, contributor, reviewer or observer
    """
    get_or_404(db, models.CollaborativeTask, task_id, "Collaborative task")
    get_or_404(db, models.User, user_id, "User")

    if _find_participant(db, task_id, user_id) is not None:
        logger.info(f"User {user_id} already participates in collaborative task {task_id}")
        raise DuplicateParticipantError("User is already a participant in this task")

    participant_role = parse_enum(models.ParticipantRole, role, "participant role")

    participant = models.CollaborativeTaskParticipant(
        collaborative_task_id=task_id,
        user_id=user_id,
        role=participant_role,
        status=models.ParticipantStatus.active,
        assigned_at=utc_now(),
        contribution=contribution or "",
    )
    with transaction(db, "add participant"):
        db.add(participant)
    db.refresh(participant)

    logger.info(f"User {user_id} joined collaborative task {task_id} as {participant_role.value}")
    return participant


def remove_participant(db: Session, task_id: int, user_id: int) -> None:
    """
    Raises:
        NotFoundError: if the task does not exist or the user is not a participant
        InvariantViolationError: if the user is the task's lead
    """
    task = get_or_404(db, models.CollaborativeTask, task_id, "Collaborative task")

    if task.lead_user_id == user_id:
        logger.info(f"Refusing to remove lead user {user_id} from collaborative task {task_id}")
        raise InvariantViolationError("Cannot remove the lead user from the task")

    participant = _find_participant(db, task_id, user_id)
    if participant is None:
        raise NotFoundError("User is not a participant in this task")

    with transaction(db, "remove participant"):
        db.delete(participant)

    logger.info(f"User {user_id} removed from collaborative task {task_id}")


def update_task_progress(db: Session, task_id: int, progress: int) -> models.CollaborativeTask:
    """
    Set progress; reaching 100 also marks the task completed.

    Values below 100 leave the status untouched.

    Raises:
        ValidationError: if progress is outside 0..100
        NotFoundError: if the task does not exist
    """
    if progress < MIN_PROGRESS or progress > MAX_PROGRESS:
        raise ValidationError(f"Progress must be between {MIN_PROGRESS} and {MAX_PROGRESS}")

    task = get_or_404(db, models.CollaborativeTask, task_id, "Collaborative task")

    with transaction(db, "update task progress"):
        task.progress = progress
        if progress == MAX_PROGRESS:
            task.status = models.TaskStatus.completed
    db.refresh(task)

    logger.info(f"Collaborative task {task_id} progress set to {progress}%")
    return task


def update_collaborative_task_status(db: Session, task_id: int, status: str) -> models.CollaborativeTask:
    task_status = parse_enum(models.TaskStatus, status, "status")
    task = get_or_404(db, models.CollaborativeTask, task_id, "Collaborative task")

    with transaction(db, "update collaborative task status"):
        task.status = task_status
    db.refresh(task)

    logger.info(f"Collaborative task {task_id} status set to {task_status.value}")
    return task


def get_collaborative_task_statistics(db: Session, task_id: int) -> dict:
    task = get_collaborative_task(db, task_id)

    by_role = {role.value: 0 for role in models.ParticipantRole}
    for participant in task.participants:
        by_role[participant.role.value] += 1

    return {
        "task_id": task.id,
        "title": task.title,
        "status": task.status,
        "progress": task.progress,
        "priority": task.priority,
        "complexity": task.complexity,
        "total_participants": len(task.participants),
        "participants_by_role": by_role,
        "assigned_at": task.assigned_at,
        "due_date": task.due_date,
    }


def get_user_collaborative_tasks(db: Session, user_id: int) -> List[models.CollaborativeTask]:
    """Collaborative tasks the user participates in, as lead or otherwise."""
    return _newest_first(
        db.query(models.CollaborativeTask)
        .join(
            models.CollaborativeTaskParticipant,
            models.CollaborativeTaskParticipant.collaborative_task_id == models.CollaborativeTask.id,
        )
        .filter(models.CollaborativeTaskParticipant.user_id == user_id)
    ).all()


def get_collaborative_tasks_by_status(db: Session, user_id: int, status: str) -> List[models.CollaborativeTask]:
    """Collaborative tasks led by the user with the given status."""
    task_status = parse_enum(models.TaskStatus, status, "status")
    return _newest_first(
        db.query(models.CollaborativeTask).filter(
            models.CollaborativeTask.lead_user_id == user_id,
            models.CollaborativeTask.status == task_status,
        )
    ).all()


def get_project_collaborative_tasks(db: Session, project_id: int) -> List[models.CollaborativeTask]:
    return _newest_first(
        db.query(models.CollaborativeTask).filter(models.CollaborativeTask.project_id == project_id)
    ).all()


def get_collaborative_tasks_by_department(db: Session, department: str) -> List[models.CollaborativeTask]:
    """Collaborative tasks whose lead belongs to the given department."""
    return _newest_first(
        db.query(models.CollaborativeTask)
        .join(models.User, models.User.id == models.CollaborativeTask.lead_user_id)
        .filter(models.User.department == department)
    ).all()


def delete_collaborative_task(db: Session, task_id: int, requester_id: int) -> None:
    """
    Delete a collaborative task led by requester_id, with its participants.

    Raises:
        TaskNotFoundOrForbiddenError: if the task is missing or led by someone else
    """
    task = (
        db.query(models.CollaborativeTask)
        .filter(
            models.CollaborativeTask.id == task_id,
            models.CollaborativeTask.lead_user_id == requester_id,
        )
        .first()
    )
    if task is None:
        logger.info(f"Collaborative task {task_id} not found or not led by user {requester_id}")
        raise TaskNotFoundOrForbiddenError("Task not found or access denied")

    with transaction(db, "delete collaborative task"):
        db.delete(task)

    logger.info(f"Collaborative task {task_id} deleted by user {requester_id}")

"""
Weekly and monthly reports for projects and users.

Reports are pure reads. A period is a trailing window ending now:
"weekly" covers the last 7 days, "monthly" the last calendar month.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

import models
from errors import ValidationError
from services.common import completion_rate, count_by_status, get_or_404
from time_utils import period_window

logger = logging.getLogger(__name__)

REPORT_PERIODS = ("weekly", "monthly")


def _resolve_period(period: str, now: Optional[datetime]) -> tuple[datetime, datetime]:
    if period not in REPORT_PERIODS:
        raise ValidationError(f"Invalid period '{period}'. Use 'weekly' or 'monthly'")
    return period_window(period, now)


def _in_window(column, start: datetime, end: datetime):
    return column.between(start, end)


def _owned_counts(db: Session, model, owner_column, owner_id: int, project_id: int) -> dict:
    total = db.query(model).filter(model.project_id == project_id, owner_column == owner_id).count()
    completed = (
        db.query(model)
        .filter(
            model.project_id == project_id,
            owner_column == owner_id,
            model.status == models.TaskStatus.completed,
        )
        .count()
    )
    return {"total": total, "completed": completed}


def _breakdown(db: Session, user_id: int, project_id: int) -> dict:
    """A user's own tasks and led collaborative tasks within one project."""
    regular = _owned_counts(db, models.Task, models.Task.user_id, user_id, project_id)
    collaborative = _owned_counts(
        db, models.CollaborativeTask, models.CollaborativeTask.lead_user_id, user_id, project_id
    )
    total = regular["total"] + collaborative["total"]
    completed = regular["completed"] + collaborative["completed"]
    return {
        "total_tasks": total,
        "completed_tasks": completed,
        "completion_rate": completion_rate(completed, total),
        "regular_tasks": regular,
        "collaborative_tasks": collaborative,
    }


def _overall(regular: dict, collaborative: dict) -> dict:
    total = regular["total"] + collaborative["total"]
    completed = regular["completed"] + collaborative["completed"]
    return {
        "total_tasks": total,
        "completed_tasks": completed,
        "completion_rate": completion_rate(completed, total),
    }


def get_project_report(db: Session, project_id: int, period: str, now: Optional[datetime] = None) -> dict:
    """
    Build a project report for the given period.

    Args:
        db: Database session
        project_id: Project to report on
        period: "weekly" or "monthly"
        now: Optional end of the window, defaults to the current time

    Returns:
        Dict with project, period, statistics and user_performance sections

    Raises:
        ValidationError: if the period is unknown
        NotFoundError: if the project does not exist
    """
    start, end = _resolve_period(period, now)
    project = get_or_404(db, models.Project, project_id, "Project")
    logger.debug(f"Building {period} report for project {project_id}")

    regular = count_by_status(db, models.Task, models.Task.project_id == project_id)
    regular["created_in_period"] = (
        db.query(models.Task)
        .filter(models.Task.project_id == project_id, _in_window(models.Task.created_at, start, end))
        .count()
    )

    collaborative = count_by_status(
        db, models.CollaborativeTask, models.CollaborativeTask.project_id == project_id
    )
    collaborative["created_in_period"] = (
        db.query(models.CollaborativeTask)
        .filter(
            models.CollaborativeTask.project_id == project_id,
            _in_window(models.CollaborativeTask.created_at, start, end),
        )
        .count()
    )

    members = (
        db.query(models.User)
        .join(models.ProjectMembership, models.ProjectMembership.user_id == models.User.id)
        .filter(models.ProjectMembership.project_id == project_id)
        .order_by(models.User.id)
        .all()
    )
    user_performance = []
    for member in members:
        entry = {
            "user_id": member.id,
            "username": member.username,
            "role": member.role,
            "department": member.department,
        }
        entry.update(_breakdown(db, member.id, project_id))
        user_performance.append(entry)

    return {
        "project": {
            "id": project.id,
            "title": project.title,
            "description": project.description,
            "status": project.status,
            "start_date": project.start_date,
            "end_date": project.end_date,
        },
        "period": {"type": period, "start_date": start, "end_date": end},
        "statistics": {
            "regular_tasks": regular,
            "collaborative_tasks": collaborative,
            "overall": _overall(regular, collaborative),
        },
        "user_performance": user_performance,
    }


def _period_counts(db: Session, model, owner_column, user_id: int, start: datetime, end: datetime) -> dict:
    counts = count_by_status(db, model, owner_column == user_id)
    counts["created_in_period"] = (
        db.query(model).filter(owner_column == user_id, _in_window(model.created_at, start, end)).count()
    )
    # A completed task's last update is taken as its completion time
    counts["completed_in_period"] = (
        db.query(model)
        .filter(
            owner_column == user_id,
            model.status == models.TaskStatus.completed,
            _in_window(model.updated_at, start, end),
        )
        .count()
    )
    return counts


def get_user_report(db: Session, user_id: int, period: str, now: Optional[datetime] = None) -> dict:
    """
    Build a user report for the given period.

    Counts cover tasks the user owns and collaborative tasks the user leads.
    period_performance compares tasks created in the window with tasks
    completed in the window.

    Raises:
        ValidationError: if the period is unknown
        NotFoundError: if the user does not exist
    """
    start, end = _resolve_period(period, now)
    user = get_or_404(db, models.User, user_id, "User")
    logger.debug(f"Building {period} report for user {user_id}")

    regular = _period_counts(db, models.Task, models.Task.user_id, user_id, start, end)
    collaborative = _period_counts(
        db, models.CollaborativeTask, models.CollaborativeTask.lead_user_id, user_id, start, end
    )

    created_in_period = regular["created_in_period"] + collaborative["created_in_period"]
    completed_in_period = regular["completed_in_period"] + collaborative["completed_in_period"]

    projects = (
        db.query(models.Project)
        .join(models.ProjectMembership, models.ProjectMembership.project_id == models.Project.id)
        .filter(models.ProjectMembership.user_id == user_id)
        .order_by(models.Project.id)
        .all()
    )
    project_performance = []
    for project in projects:
        entry = {
            "project_id": project.id,
            "project_title": project.title,
            "project_status": project.status,
        }
        entry.update(_breakdown(db, user_id, project.id))
        project_performance.append(entry)

    return {
        "user": {
            "id": user.id,
            "username": user.username,
            "role": user.role,
            "department": user.department,
        },
        "period": {"type": period, "start_date": start, "end_date": end},
        "statistics": {
            "regular_tasks": regular,
            "collaborative_tasks": collaborative,
            "overall": _overall(regular, collaborative),
            "period_performance": {
                "total_tasks": created_in_period,
                "completed_tasks": completed_in_period,
                "completion_rate": completion_rate(completed_in_period, created_in_period),
            },
        },
        "project_performance": project_performance,
    }

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import models
import schemas
from auth.dependencies import get_current_user, require_role
from database import get_db
from services import tasks as task_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.post("", response_model=schemas.Task, status_code=status.HTTP_201_CREATED)
def create_task(
    task: schemas.TaskCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a task.

    Without assigned_to the task belongs to the caller. With assigned_to set
    to another user the caller must be a manager or admin.
    """
    if task.assigned_to is not None and task.assigned_to != current_user.id:
        return task_service.create_task_for_user(
            db,
            task.title,
            task.description,
            target_user_id=task.assigned_to,
            assigner_id=current_user.id,
            project_id=task.project_id,
            due_date=task.due_date,
            priority=task.priority,
        )

    return task_service.create_task(
        db,
        task.title,
        task.description,
        owner_id=current_user.id,
        project_id=task.project_id,
        due_date=task.due_date,
        priority=task.priority,
    )


@router.post("/assign", response_model=schemas.Task, status_code=status.HTTP_201_CREATED)
def create_task_for_user(
    task: schemas.TaskCreateForUser,
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    """Create a task for another user (manager+)."""
    return task_service.create_task_for_user(
        db,
        task.title,
        task.description,
        target_user_id=task.user_id,
        assigner_id=current_user.id,
        project_id=task.project_id,
        due_date=task.due_date,
        priority=task.priority,
    )


@router.get("", response_model=List[schemas.Task])
def get_my_tasks(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the caller's own tasks, newest first."""
    return task_service.get_user_tasks(db, current_user.id)


@router.get("/status/{task_status}", response_model=List[schemas.Task])
def get_tasks_by_status(
    task_status: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return task_service.get_tasks_by_status(db, current_user.id, task_status)


@router.get("/department/{department}", response_model=List[schemas.Task])
def get_tasks_by_department(
    department: str,
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    return task_service.get_tasks_by_department(db, department)


@router.get("/statistics", response_model=schemas.TaskStatistics)
def get_task_statistics(
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    return task_service.get_task_statistics(db)


@router.post("/bulk-update", response_model=schemas.BulkUpdateResult)
def bulk_update_task_status(
    update: schemas.BulkTaskStatusUpdate,
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    """Set one status on many tasks (manager+)."""
    logger.debug(f"User {current_user.id} bulk updating {len(update.task_ids)} task(s)")
    updated = task_service.bulk_update_task_status(db, update.task_ids, update.status)
    return {"updated_count": updated}


@router.patch("/{task_id}/status", response_model=schemas.Task)
def update_task_status(
    task_id: int,
    update: schemas.TaskStatusUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    logger.debug(f"User {current_user.id} updating status of task {task_id}")
    return task_service.update_task_status(db, task_id, update.status)


@router.delete("/{task_id}", response_model=schemas.Message)
def delete_task(
    task_id: int,
    current_user: models.User = Depends(require_role(models.UserRole.head)),
    db: Session = Depends(get_db)
):
    """Delete one of the caller's own tasks (head+)."""
    task_service.delete_task(db, task_id, current_user.id)
    return {"message": "Task deleted successfully"}

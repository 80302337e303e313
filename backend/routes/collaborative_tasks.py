import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import models
import schemas
from auth.dependencies import get_current_user, require_role
from database import get_db
from services import collaborative_tasks as collaborative_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/collaborative-tasks", tags=["collaborative-tasks"])


@router.post("", response_model=schemas.CollaborativeTaskDetail, status_code=status.HTTP_201_CREATED)
def create_collaborative_task(
    task: schemas.CollaborativeTaskCreate,
    current_user: models.User = Depends(require_role(models.UserRole.head)),
    db: Session = Depends(get_db)
):
    """Create a collaborative task; the lead is enrolled as its first participant (head+)."""
    logger.debug(f"User {current_user.id} creating collaborative task led by {task.lead_user_id}")
    created = collaborative_service.create_collaborative_task(
        db,
        task.title,
        task.description,
        lead_user_id=task.lead_user_id,
        priority=task.priority,
        complexity=task.complexity,
        project_id=task.project_id,
        due_date=task.due_date,
    )
    return collaborative_service.get_collaborative_task(db, created.id)


@router.get("", response_model=List[schemas.CollaborativeTask])
def get_my_collaborative_tasks(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Collaborative tasks the caller participates in."""
    return collaborative_service.get_user_collaborative_tasks(db, current_user.id)


@router.get("/status/{task_status}", response_model=List[schemas.CollaborativeTask])
def get_collaborative_tasks_by_status(
    task_status: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return collaborative_service.get_collaborative_tasks_by_status(db, current_user.id, task_status)


@router.get("/department/{department}", response_model=List[schemas.CollaborativeTask])
def get_collaborative_tasks_by_department(
    department: str,
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    return collaborative_service.get_collaborative_tasks_by_department(db, department)


@router.get("/{task_id}", response_model=schemas.CollaborativeTaskDetail)
def get_collaborative_task(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return collaborative_service.get_collaborative_task(db, task_id)


@router.get("/{task_id}/statistics", response_model=schemas.CollaborativeTaskStatistics)
def get_collaborative_task_statistics(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return collaborative_service.get_collaborative_task_statistics(db, task_id)


@router.post("/{task_id}/participants", response_model=schemas.Participant, status_code=status.HTTP_201_CREATED)
def add_participant(
    task_id: int,
    participant: schemas.ParticipantCreate,
    current_user: models.User = Depends(require_role(models.UserRole.head)),
    db: Session = Depends(get_db)
):
    return collaborative_service.add_participant(
        db, task_id, participant.user_id, participant.role, participant.contribution
    )


@router.delete("/{task_id}/participants/{user_id}", response_model=schemas.Message)
def remove_participant(
    task_id: int,
    user_id: int,
    current_user: models.User = Depends(require_role(models.UserRole.head)),
    db: Session = Depends(get_db)
):
    collaborative_service.remove_participant(db, task_id, user_id)
    return {"message": "Participant removed successfully"}


@router.patch("/{task_id}/progress", response_model=schemas.CollaborativeTask)
def update_task_progress(
    task_id: int,
    update: schemas.ProgressUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Set progress (0-100); 100 marks the task completed."""
    return collaborative_service.update_task_progress(db, task_id, update.progress)


@router.patch("/{task_id}/status", response_model=schemas.CollaborativeTask)
def update_collaborative_task_status(
    task_id: int,
    update: schemas.TaskStatusUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return collaborative_service.update_collaborative_task_status(db, task_id, update.status)


@router.delete("/{task_id}", response_model=schemas.Message)
def delete_collaborative_task(
    task_id: int,
    current_user: models.User = Depends(require_role(models.UserRole.head)),
    db: Session = Depends(get_db)
):
    """Delete a collaborative task the caller leads (head+)."""
    collaborative_service.delete_collaborative_task(db, task_id, current_user.id)
    return {"message": "Collaborative task deleted successfully"}

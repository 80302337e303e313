import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import models
import schemas
from auth.dependencies import get_current_admin, get_current_user, require_role
from auth.permissions import require_project_access
from database import get_db
from services import collaborative_tasks as collaborative_service
from services import projects as project_service
from services import tasks as task_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", response_model=schemas.Project, status_code=status.HTTP_201_CREATED)
def create_project(
    project: schemas.ProjectCreate,
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    """Create a project; the caller becomes its first member (manager+)."""
    return project_service.create_project(
        db,
        project.title,
        project.description,
        creator_id=current_user.id,
        start_date=project.start_date,
        end_date=project.end_date,
    )


@router.get("/my-projects", response_model=List[schemas.Project])
def get_my_projects(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return project_service.get_user_projects(db, current_user.id)


@router.get("/{project_id}", response_model=schemas.ProjectDetail)
def get_project(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get a project with its members (members and admins only)."""
    project = require_project_access(current_user, project_id, db)
    detail = schemas.Project.model_validate(project).model_dump()
    detail["members"] = project_service.get_project_members(db, project_id)
    return detail


@router.get("/{project_id}/members", response_model=List[schemas.ProjectMember])
def get_project_members(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    require_project_access(current_user, project_id, db)
    return project_service.get_project_members(db, project_id)


@router.post("/{project_id}/members", response_model=schemas.Message, status_code=status.HTTP_201_CREATED)
def add_project_member(
    project_id: int,
    member: schemas.MembershipCreate,
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    logger.debug(f"User {current_user.id} adding user {member.user_id} to project {project_id}")
    project_service.add_user_to_project(db, member.user_id, project_id, member.role)
    return {"message": "User added to project successfully"}


@router.delete("/{project_id}/members/{user_id}", response_model=schemas.Message)
def remove_project_member(
    project_id: int,
    user_id: int,
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    project_service.remove_user_from_project(db, user_id, project_id)
    return {"message": "User removed from project successfully"}


@router.patch("/{project_id}/status", response_model=schemas.Project)
def update_project_status(
    project_id: int,
    update: schemas.ProjectStatusUpdate,
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    return project_service.update_project_status(db, project_id, update.status)


@router.get("/{project_id}/tasks", response_model=schemas.ProjectTasks)
def get_project_tasks(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Regular and collaborative tasks attached to a project."""
    require_project_access(current_user, project_id, db)
    return {
        "tasks": task_service.get_project_tasks(db, project_id),
        "collaborative_tasks": collaborative_service.get_project_collaborative_tasks(db, project_id),
    }


@router.get("/{project_id}/statistics", response_model=schemas.ProjectStatistics)
def get_project_statistics(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    require_project_access(current_user, project_id, db)
    return project_service.get_project_statistics(db, project_id)


@router.get("/{project_id}/progress", response_model=schemas.ProjectProgress)
def get_project_progress(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    require_project_access(current_user, project_id, db)
    return project_service.get_project_progress(db, project_id)


@router.delete("/{project_id}", response_model=schemas.Message)
def delete_project(
    project_id: int,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Delete a project; its tasks are kept and detached (admin only)."""
    logger.debug(f"Admin {current_user.id} deleting project {project_id}")
    project_service.delete_project(db, project_id)
    return {"message": "Project deleted successfully"}

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import models
import schemas
from auth.dependencies import require_role
from database import get_db
from services import reports as report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/projects/{project_id}", response_model=schemas.ProjectReport)
def get_project_report(
    project_id: int,
    period: str = Query("weekly", description="weekly or monthly"),
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    """Status counts, period activity and per-member performance for a project (manager+)."""
    logger.debug(f"User {current_user.id} requesting {period} report for project {project_id}")
    return report_service.get_project_report(db, project_id, period)


@router.get("/users/{user_id}", response_model=schemas.UserReport)
def get_user_report(
    user_id: int,
    period: str = Query("weekly", description="weekly or monthly"),
    current_user: models.User = Depends(require_role(models.UserRole.manager)),
    db: Session = Depends(get_db)
):
    """Status counts, period performance and per-project breakdown for a user (manager+)."""
    logger.debug(f"User {current_user.id} requesting {period} report for user {user_id}")
    return report_service.get_user_report(db, user_id, period)

"""
Tests for all-or-nothing multi-step writes.

Each of these operations writes several rows in one transaction:
- create_project (project + creator membership)
- create_collaborative_task (task + lead participant)
- delete_project (memberships, task detaching, project row)
- delete_user (memberships, created projects, participants, tasks, user row)

A failure in a later step must leave the database exactly as it was and
surface as StorageError (HTTP 500).
"""

import logging
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

import models
from errors import StorageError
from services import collaborative_tasks as collaborative_service
from services import projects as project_service
from services import tasks as task_service
from services import users as user_service

logger = logging.getLogger(__name__)


# ============== Helpers ==============


def without_user(monkeypatch, model_name: str) -> None:
    """
    Make every new row of models.<model_name> violate its NOT NULL user_id.

    Call monkeypatch.undo() before querying the model again.
    """
    real_model = getattr(models, model_name)

    def broken_row(**kwargs):
        kwargs["user_id"] = None
        return real_model(**kwargs)

    monkeypatch.setattr(models, model_name, broken_row)


def fail_on_delete(monkeypatch, db: Session, model) -> None:
    """Make db.delete() raise a database error for instances of model only."""
    real_delete = db.delete

    def flaky_delete(instance):
        if isinstance(instance, model):
            raise OperationalError("DELETE", {}, Exception("database is locked"))
        return real_delete(instance)

    monkeypatch.setattr(db, "delete", flaky_delete)


# ============== Creation ==============


def test_project_not_created_when_membership_insert_fails(monkeypatch, test_db: Session, manager_user):
    without_user(monkeypatch, "ProjectMembership")

    with pytest.raises(StorageError):
        project_service.create_project(
            test_db, "Half-built", "", manager_user.id, datetime(2024, 1, 1, tzinfo=timezone.utc)
        )
    monkeypatch.undo()

    assert test_db.query(models.Project).count() == 0
    assert test_db.query(models.ProjectMembership).count() == 0


def test_collaborative_task_not_created_when_lead_insert_fails(monkeypatch, test_db: Session, head_user):
    without_user(monkeypatch, "CollaborativeTaskParticipant")

    with pytest.raises(StorageError):
        collaborative_service.create_collaborative_task(
            test_db, "Half-built", "", head_user.id, "high", "complex"
        )
    monkeypatch.undo()

    assert test_db.query(models.CollaborativeTask).count() == 0
    assert test_db.query(models.CollaborativeTaskParticipant).count() == 0


def test_storage_error_maps_to_500(monkeypatch, client: TestClient, test_db: Session, manager_headers):
    without_user(monkeypatch, "ProjectMembership")

    response = client.post(
        "/api/projects",
        json={"title": "Half-built", "start_date": "2024-01-01T00:00:00Z"},
        headers=manager_headers,
    )
    assert response.status_code == 500, f"Expected 500, got {response.status_code}: {response.json()}"
    assert response.json()["error_code"] == "storage_error"
    assert test_db.query(models.Project).count() == 0


# ============== Deletion ==============


def test_project_delete_rolls_back(
    monkeypatch,
    test_db: Session,
    project: models.Project,
    employee_user: models.User,
):
    """Memberships and detached tasks are restored when the project row cannot be deleted."""
    project_service.add_user_to_project(test_db, employee_user.id, project.id, "employee")
    task = task_service.create_task(test_db, "Attached", "", employee_user.id, project_id=project.id)
    project_id, task_id = project.id, task.id

    fail_on_delete(monkeypatch, test_db, models.Project)
    with pytest.raises(StorageError):
        project_service.delete_project(test_db, project_id)

    test_db.expire_all()
    assert test_db.query(models.Project).filter(models.Project.id == project_id).count() == 1
    assert test_db.query(models.ProjectMembership).filter(
        models.ProjectMembership.project_id == project_id
    ).count() == 2
    assert test_db.query(models.Task).filter(models.Task.id == task_id).one().project_id == project_id


def test_user_delete_rolls_back(
    monkeypatch,
    test_db: Session,
    project: models.Project,
    manager_user: models.User,
    head_user: models.User,
    employee_user: models.User,
):
    """A failure on the final step leaves every earlier step undone."""
    project_service.add_user_to_project(test_db, employee_user.id, project.id, "employee")
    owned = task_service.create_task(test_db, "Manager's", "", manager_user.id, project_id=project.id)
    assigned = task_service.create_task_for_user(
        test_db, "Assigned", "", employee_user.id, manager_user.id, project_id=project.id
    )
    led = collaborative_service.create_collaborative_task(
        test_db, "Led", "", manager_user.id, "low", "simple"
    )
    joined = collaborative_service.create_collaborative_task(
        test_db, "Joined", "", head_user.id, "low", "simple"
    )
    collaborative_service.add_participant(test_db, joined.id, manager_user.id, "reviewer")
    manager_id, project_id = manager_user.id, project.id
    owned_id, assigned_id, led_id, joined_id = owned.id, assigned.id, led.id, joined.id

    fail_on_delete(monkeypatch, test_db, models.User)
    with pytest.raises(StorageError):
        user_service.delete_user(test_db, manager_id)

    test_db.expire_all()
    assert test_db.query(models.User).filter(models.User.id == manager_id).count() == 1
    assert test_db.query(models.Project).filter(models.Project.id == project_id).count() == 1
    assert project_service.is_project_member(test_db, manager_id, project_id)
    assert project_service.is_project_member(test_db, employee_user.id, project_id)
    assert test_db.query(models.Task).filter(models.Task.id == owned_id).count() == 1

    remaining = test_db.query(models.Task).filter(models.Task.id == assigned_id).one()
    assert remaining.assigned_by == manager_id
    assert remaining.project_id == project_id

    assert test_db.query(models.CollaborativeTask).filter(models.CollaborativeTask.id == led_id).count() == 1
    joined_users = {p.user_id for p in collaborative_service.get_collaborative_task(test_db, joined_id).participants}
    assert joined_users == {head_user.id, manager_id}
    logger.info("✓ Failed user deletion left every row in place")

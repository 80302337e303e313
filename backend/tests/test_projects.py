"""
Tests for projects and project membership.

Covers:
- Creation enrols the creator as a manager member
- Date validation on creation
- Member-or-admin reads, with 404 for non-members
- Membership add/remove rules (duplicates, creator protection)
- Deleting a project detaches its tasks instead of deleting them
- Progress and statistics
"""

import logging
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import models
from errors import DuplicateMembershipError, InvariantViolationError, NotFoundError, ValidationError
from services import collaborative_tasks as collaborative_service
from services import projects as project_service
from services import tasks as task_service

logger = logging.getLogger(__name__)


# ============== Creation ==============


def test_manager_creates_project(client: TestClient, manager_user, manager_headers):
    response = client.post(
        "/api/projects",
        json={"title": "Website", "description": "Relaunch", "start_date": "2024-03-01T00:00:00Z"},
        headers=manager_headers,
    )
    assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.json()}"

    data = response.json()
    assert data["status"] == "active"
    assert data["created_by"] == manager_user.id
    assert data["end_date"] is None

    members = client.get(f"/api/projects/{data['id']}/members", headers=manager_headers).json()
    assert [(m["user_id"], m["project_role"]) for m in members] == [(manager_user.id, "manager")]
    logger.info(f"✓ Project {data['id']} created with its creator enrolled")


def test_head_cannot_create_project(client: TestClient, head_headers):
    response = client.post(
        "/api/projects",
        json={"title": "Side project", "start_date": "2024-03-01T00:00:00Z"},
        headers=head_headers,
    )
    assert response.status_code == 403


def test_end_before_start_is_rejected(client: TestClient, test_db: Session, manager_headers):
    response = client.post(
        "/api/projects",
        json={
            "title": "Backwards",
            "start_date": "2024-03-01T00:00:00Z",
            "end_date": "2024-02-01T00:00:00Z",
        },
        headers=manager_headers,
    )
    assert response.status_code == 400
    assert test_db.query(models.Project).count() == 0


def test_end_equal_to_start_is_allowed(test_db: Session, manager_user):
    day = datetime(2024, 5, 1, tzinfo=timezone.utc)
    created = project_service.create_project(test_db, "One day", "", manager_user.id, day, day)
    assert created.end_date is not None


def test_create_with_missing_creator(test_db: Session):
    with pytest.raises(NotFoundError):
        project_service.create_project(test_db, "Ghost", "", 99999, datetime(2024, 1, 1))


# ============== Reads ==============


def test_member_reads_project_detail(client: TestClient, test_db: Session, project, employee_user, employee_headers):
    project_service.add_user_to_project(test_db, employee_user.id, project.id, "employee")

    response = client.get(f"/api/projects/{project.id}", headers=employee_headers)
    assert response.status_code == 200

    data = response.json()
    assert data["title"] == "Test Project"
    assert {m["username"] for m in data["members"]} == {"manager", "employee"}


def test_non_member_gets_not_found(client: TestClient, project, employee_headers):
    for path in ("", "/members", "/tasks", "/statistics", "/progress"):
        response = client.get(f"/api/projects/{project.id}{path}", headers=employee_headers)
        assert response.status_code == 404, f"GET {path or '/'}: expected 404, got {response.status_code}"


def test_admin_reads_any_project(client: TestClient, project, admin_headers):
    response = client.get(f"/api/projects/{project.id}", headers=admin_headers)
    assert response.status_code == 200


def test_missing_project(client: TestClient, admin_headers):
    assert client.get("/api/projects/99999", headers=admin_headers).status_code == 404


def test_my_projects(client: TestClient, test_db: Session, project, manager_user, employee_user, employee_headers):
    assert client.get("/api/projects/my-projects", headers=employee_headers).json() == []

    project_service.add_user_to_project(test_db, employee_user.id, project.id, "employee")
    project_service.create_project(
        test_db, "Other", "", manager_user.id, datetime(2024, 2, 1, tzinfo=timezone.utc)
    )

    mine = client.get("/api/projects/my-projects", headers=employee_headers).json()
    assert [p["id"] for p in mine] == [project.id]


def test_project_tasks(client: TestClient, test_db: Session, project, manager_user, manager_headers):
    task_service.create_task(test_db, "Regular", "", manager_user.id, project_id=project.id)
    task_service.create_task(test_db, "Elsewhere", "", manager_user.id)
    collaborative_service.create_collaborative_task(
        test_db, "Joint", "", manager_user.id, "low", "simple", project_id=project.id
    )

    response = client.get(f"/api/projects/{project.id}/tasks", headers=manager_headers)
    assert response.status_code == 200

    data = response.json()
    assert [t["title"] for t in data["tasks"]] == ["Regular"]
    assert [t["title"] for t in data["collaborative_tasks"]] == ["Joint"]


# ============== Membership ==============


def test_add_member(client: TestClient, project, head_user, manager_headers):
    response = client.post(
        f"/api/projects/{project.id}/members",
        json={"user_id": head_user.id, "role": "head"},
        headers=manager_headers,
    )
    assert response.status_code == 201

    members = client.get(f"/api/projects/{project.id}/members", headers=manager_headers).json()
    head_entry = next(m for m in members if m["user_id"] == head_user.id)
    assert head_entry["project_role"] == "head"
    assert head_entry["user_role"] == "head"


def test_add_member_defaults_to_employee_role(test_db: Session, project, employee_user):
    membership = project_service.add_user_to_project(test_db, employee_user.id, project.id, "employee")
    assert membership.role == "employee"


def test_duplicate_membership(client: TestClient, test_db: Session, project, employee_user, manager_headers):
    project_service.add_user_to_project(test_db, employee_user.id, project.id, "employee")

    with pytest.raises(DuplicateMembershipError):
        project_service.add_user_to_project(test_db, employee_user.id, project.id, "head")

    response = client.post(
        f"/api/projects/{project.id}/members",
        json={"user_id": employee_user.id},
        headers=manager_headers,
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "duplicate_membership"


def test_add_member_invalid_role(test_db: Session, project, employee_user):
    with pytest.raises(ValidationError):
        project_service.add_user_to_project(test_db, employee_user.id, project.id, "admin")


def test_add_member_missing_user_or_project(test_db: Session, project, employee_user):
    with pytest.raises(NotFoundError):
        project_service.add_user_to_project(test_db, 99999, project.id, "employee")
    with pytest.raises(NotFoundError):
        project_service.add_user_to_project(test_db, employee_user.id, 99999, "employee")


def test_add_member_requires_manager(client: TestClient, project, employee_user, head_headers):
    response = client.post(
        f"/api/projects/{project.id}/members",
        json={"user_id": employee_user.id},
        headers=head_headers,
    )
    assert response.status_code == 403


def test_remove_member(client: TestClient, test_db: Session, project, employee_user, manager_headers):
    project_service.add_user_to_project(test_db, employee_user.id, project.id, "employee")

    response = client.delete(f"/api/projects/{project.id}/members/{employee_user.id}", headers=manager_headers)
    assert response.status_code == 200
    assert not project_service.is_project_member(test_db, employee_user.id, project.id)


def test_creator_cannot_be_removed(client: TestClient, test_db: Session, project, manager_user, manager_headers):
    with pytest.raises(InvariantViolationError):
        project_service.remove_user_from_project(test_db, manager_user.id, project.id)

    response = client.delete(f"/api/projects/{project.id}/members/{manager_user.id}", headers=manager_headers)
    assert response.status_code == 409
    assert project_service.is_project_member(test_db, manager_user.id, project.id)


def test_remove_non_member(test_db: Session, project, employee_user):
    with pytest.raises(NotFoundError):
        project_service.remove_user_from_project(test_db, employee_user.id, project.id)


# ============== Status ==============


def test_update_status(client: TestClient, project, manager_headers):
    response = client.patch(f"/api/projects/{project.id}/status", json={"status": "paused"}, headers=manager_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "paused"

    invalid = client.patch(f"/api/projects/{project.id}/status", json={"status": "archived"}, headers=manager_headers)
    assert invalid.status_code == 400


# ============== Deletion ==============


def test_delete_project_detaches_tasks(
    client: TestClient,
    test_db: Session,
    project: models.Project,
    manager_user: models.User,
    employee_user: models.User,
    admin_headers,
):
    project_service.add_user_to_project(test_db, employee_user.id, project.id, "employee")
    task = task_service.create_task(test_db, "Survivor", "", employee_user.id, project_id=project.id)
    collaborative = collaborative_service.create_collaborative_task(
        test_db, "Joint survivor", "", manager_user.id, "low", "simple", project_id=project.id
    )
    project_id, task_id, collaborative_id = project.id, task.id, collaborative.id

    response = client.delete(f"/api/projects/{project_id}", headers=admin_headers)
    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.json()}"

    test_db.expire_all()
    assert test_db.query(models.Project).filter(models.Project.id == project_id).first() is None
    assert test_db.query(models.ProjectMembership).filter(
        models.ProjectMembership.project_id == project_id
    ).count() == 0
    assert test_db.query(models.Task).filter(models.Task.id == task_id).one().project_id is None
    assert test_db.query(models.CollaborativeTask).filter(
        models.CollaborativeTask.id == collaborative_id
    ).one().project_id is None
    logger.info("✓ Tasks survived project deletion")


def test_delete_project_requires_admin(client: TestClient, project, manager_headers):
    assert client.delete(f"/api/projects/{project.id}", headers=manager_headers).status_code == 403


def test_delete_missing_project(test_db: Session):
    with pytest.raises(NotFoundError):
        project_service.delete_project(test_db, 99999)


# ============== Progress and Statistics ==============


def test_progress_and_statistics(client: TestClient, test_db: Session, project, manager_user, employee_user, manager_headers):
    project_service.add_user_to_project(test_db, employee_user.id, project.id, "employee")
    done = task_service.create_task(test_db, "Done", "", employee_user.id, project_id=project.id)
    started = task_service.create_task(test_db, "Started", "", employee_user.id, project_id=project.id)
    dropped = task_service.create_task(test_db, "Dropped", "", manager_user.id, project_id=project.id)
    task_service.update_task_status(test_db, done.id, "completed")
    task_service.update_task_status(test_db, started.id, "in_progress")
    task_service.update_task_status(test_db, dropped.id, "cancelled")
    collaborative = collaborative_service.create_collaborative_task(
        test_db, "Joint", "", manager_user.id, "high", "complex", project_id=project.id
    )
    collaborative_service.update_task_progress(test_db, collaborative.id, 100)

    progress = client.get(f"/api/projects/{project.id}/progress", headers=manager_headers).json()
    assert progress["total_tasks"] == 4
    assert progress["completed_tasks"] == 2
    assert progress["in_progress_tasks"] == 1
    assert progress["pending_tasks"] == 0
    assert progress["progress"] == pytest.approx(50.0)

    stats = client.get(f"/api/projects/{project.id}/statistics", headers=manager_headers).json()
    assert stats["total_members"] == 2
    assert stats["regular_tasks"] == 3
    assert stats["collaborative_tasks"] == 1
    assert stats["cancelled_tasks"] == 1
    assert stats["completion_rate"] == pytest.approx(50.0)


def test_progress_of_empty_project(test_db: Session, project):
    assert project_service.get_project_progress(test_db, project.id)["progress"] == 0.0

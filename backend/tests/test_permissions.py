"""
Tests for the role hierarchy and resource-level permission rules.

Covers:
- role_level ordering (employee < head < manager < admin)
- authorize() for every pair of roles
- is_self_or_admin()
- require_project_access() for admins, members, non-members and missing projects
- Route guards rejecting roles below the minimum
"""

import itertools
import logging

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import models
from auth.permissions import authorize, is_self_or_admin, require_project_access, role_level
from errors import NotFoundError
from tests.conftest import auth_headers_for

logger = logging.getLogger(__name__)

ROLES_ASCENDING = [
    models.UserRole.employee,
    models.UserRole.head,
    models.UserRole.manager,
    models.UserRole.admin,
]


# ============== Role Hierarchy ==============


def test_role_levels_are_strictly_increasing():
    levels = [role_level(role) for role in ROLES_ASCENDING]
    assert levels == sorted(levels)
    assert len(set(levels)) == len(levels), f"Role levels must be distinct, got {levels}"


def test_role_level_accepts_strings():
    assert role_level("manager") == role_level(models.UserRole.manager)


def test_unknown_role_is_below_every_role():
    assert role_level("superuser") == 0
    for role in ROLES_ASCENDING:
        assert not authorize("superuser", role)


@pytest.mark.parametrize("actual,required", list(itertools.product(ROLES_ASCENDING, repeat=2)))
def test_authorize_follows_hierarchy(actual, required):
    """A role satisfies every requirement at or below its own level and none above."""
    expected = ROLES_ASCENDING.index(actual) >= ROLES_ASCENDING.index(required)
    assert authorize(actual, required) is expected, (
        f"authorize({actual.value}, {required.value}) should be {expected}"
    )


# ============== Self or Admin ==============


def test_self_or_admin(employee_user, another_employee, admin_user):
    assert is_self_or_admin(employee_user, employee_user.id)
    assert not is_self_or_admin(employee_user, another_employee.id)
    assert is_self_or_admin(admin_user, employee_user.id)


# ============== Project Access ==============


def test_project_access_for_member(test_db: Session, manager_user, project):
    assert require_project_access(manager_user, project.id, test_db).id == project.id


def test_project_access_for_admin_without_membership(test_db: Session, admin_user, project):
    assert require_project_access(admin_user, project.id, test_db).id == project.id


def test_project_access_non_member_gets_not_found(test_db: Session, employee_user, project):
    with pytest.raises(NotFoundError):
        require_project_access(employee_user, project.id, test_db)


def test_project_access_missing_project(test_db: Session, admin_user):
    with pytest.raises(NotFoundError):
        require_project_access(admin_user, 99999, test_db)


# ============== Route Guards ==============


@pytest.mark.parametrize("role", ROLES_ASCENDING)
def test_statistics_requires_manager(client: TestClient, make_user, role):
    user = make_user(f"user_{role.value}", role)
    response = client.get("/api/tasks/statistics", headers=auth_headers_for(user))

    expected = 200 if authorize(role, models.UserRole.manager) else 403
    assert response.status_code == expected, (
        f"Expected {expected} for {role.value}, got {response.status_code}: {response.json()}"
    )
    logger.info(f"✓ {role.value} -> {response.status_code} on manager-only route")


@pytest.mark.parametrize("role", ROLES_ASCENDING)
def test_user_listing_requires_admin(client: TestClient, make_user, role):
    user = make_user(f"user_{role.value}", role)
    response = client.get("/api/users", headers=auth_headers_for(user))

    expected = 200 if role == models.UserRole.admin else 403
    assert response.status_code == expected

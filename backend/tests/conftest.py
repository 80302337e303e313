"""
Test configuration and fixtures for task manager tests.

Provides:
- Test database with SQLite in-memory for speed
- FastAPI test client with database dependency override
- Authentication helpers (JWT token generation)
- One user fixture per role, plus a project owned by the manager
"""

import os
import sys
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Dict

import pytest

# Keep the app's own engine off the filesystem and the signing key stable
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, get_db
from main import app
import models
from auth.security import hash_password, create_access_token
from services import projects as project_service

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

# SQLite in-memory database for fast testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

DEFAULT_PASSWORD = "password123"


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """
    Create a fresh in-memory SQLite database for each test.

    This ensures test isolation and fast execution.
    """
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(test_db: Session) -> TestClient:
    """
    Create FastAPI test client with database dependency override.
    """
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def make_user(test_db: Session) -> Callable[..., models.User]:
    """
    Factory fixture that inserts a user directly.

    Usage: make_user("alice", models.UserRole.head, department="engineering")
    """
    def _make_user(
        username: str,
        role: models.UserRole = models.UserRole.employee,
        department: str = "engineering",
        password: str = DEFAULT_PASSWORD,
    ) -> models.User:
        user = models.User(
            username=username,
            password_hash=hash_password(password),
            role=role,
            department=department,
        )
        test_db.add(user)
        test_db.commit()
        test_db.refresh(user)
        logger.debug(f"Created {role.value} user {username} with ID: {user.id}")
        return user

    return _make_user


@pytest.fixture(scope="function")
def admin_user(make_user) -> models.User:
    return make_user("admin", models.UserRole.admin, department="administration")


@pytest.fixture(scope="function")
def manager_user(make_user) -> models.User:
    return make_user("manager", models.UserRole.manager)


@pytest.fixture(scope="function")
def head_user(make_user) -> models.User:
    return make_user("head", models.UserRole.head)


@pytest.fixture(scope="function")
def employee_user(make_user) -> models.User:
    return make_user("employee", models.UserRole.employee)


@pytest.fixture(scope="function")
def another_employee(make_user) -> models.User:
    return make_user("employee2", models.UserRole.employee, department="sales")


def create_auth_token(user: models.User, expires_delta: timedelta = None) -> str:
    """
    Helper to create JWT access token for a user.

    Args:
        user: User to create token for
        expires_delta: Optional expiration time override

    Returns:
        JWT access token string
    """
    return create_access_token(user.id, user.role.value, expires_delta)


def auth_headers_for(user: models.User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_auth_token(user)}"}


@pytest.fixture(scope="function")
def admin_headers(admin_user: models.User) -> Dict[str, str]:
    return auth_headers_for(admin_user)


@pytest.fixture(scope="function")
def manager_headers(manager_user: models.User) -> Dict[str, str]:
    return auth_headers_for(manager_user)


@pytest.fixture(scope="function")
def head_headers(head_user: models.User) -> Dict[str, str]:
    return auth_headers_for(head_user)


@pytest.fixture(scope="function")
def employee_headers(employee_user: models.User) -> Dict[str, str]:
    return auth_headers_for(employee_user)


@pytest.fixture(scope="function")
def project(test_db: Session, manager_user: models.User) -> models.Project:
    """
    Create a project owned by the manager (who is enrolled as a member).
    """
    return project_service.create_project(
        test_db,
        "Test Project",
        "A project for testing",
        creator_id=manager_user.id,
        start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )

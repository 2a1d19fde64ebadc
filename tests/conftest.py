import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from types import SimpleNamespace
from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import rbac.models  # noqa: F401
from rbac.core.config import settings
from rbac.db.base import Base
from rbac.db.session import get_db
from rbac.db.seeds.seed_all import seed_all
from rbac.hierarchy.store import RoleStore
from rbac.main import app
from rbac.services.role_service import role_service
from rbac.services.user_service import user_service

# Test database URL
TEST_DATABASE_URL = "sqlite://"

# One shared in-memory connection for the fixtures and every request
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

DEFAULT_PASSWORD = "secret123"


class FakeRoleStore(RoleStore):
    """Dict-backed RoleStore so the hierarchy core runs without a database."""

    def __init__(self, roles=()):
        self.roles: Dict[int, Any] = {role.id: role for role in roles}
        self.saved = []
        self.fail_on_save = set()

    def get(self, role_id):
        return self.roles.get(role_id)

    def find_children(self, parent_id):
        return sorted(
            (r for r in self.roles.values() if r.parent_id == parent_id),
            key=lambda r: r.id,
        )

    def list_all(self):
        return list(self.roles.values())

    def save(self, role):
        if role.id in self.fail_on_save:
            raise RuntimeError(f"cannot write role {role.id}")
        self.saved.append(role.id)


def fake_role(id: int, parent_id: Optional[int] = None, level: int = 0, permissions=(), name=None):
    return SimpleNamespace(
        id=id,
        name=name or f"role-{id}",
        parent_id=parent_id,
        level=level,
        permission_ids=set(permissions),
    )


@pytest.fixture
def make_store():
    """Build a FakeRoleStore from ``fake_role`` records."""
    return FakeRoleStore


@pytest.fixture
def role():
    return fake_role


@pytest.fixture
def db():
    """Fresh schema with default permissions, roles and the super admin."""
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    seed_all(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


def override_get_db():
    """Override database dependency for testing"""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    """Create test client"""
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _login(
    client: TestClient,
    email: str,
    password: str = DEFAULT_PASSWORD,
    headers: Optional[dict] = None,
) -> dict:
    response = client.post(
        "/api/auth/login", json={"email": email, "password": password}, headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


def _bearer(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def admin_tokens(client) -> dict:
    return _login(client, settings.SUPER_ADMIN_EMAIL, settings.SUPER_ADMIN_PASSWORD)


@pytest.fixture
def auth_headers(admin_tokens) -> dict:
    """Authentication headers for the seeded super admin"""
    return _bearer(admin_tokens)


@pytest.fixture
def make_user(db, client):
    """Create a user on a seeded role and log them in; returns (user, headers)."""

    def _make(role_name: str, email: Optional[str] = None):
        role = role_service.get_by_name(db, role_name)
        user, _ = user_service.create(
            db,
            email or f"{role_name}@example.com",
            f"{role_name.title()} User",
            role.id,
            password=DEFAULT_PASSWORD,
        )
        return user, _bearer(_login(client, user.email))

    return _make


@pytest.fixture
def seeded_roles(db) -> Dict[str, Any]:
    return {name: role_service.get_by_name(db, name) for name in ("guest", "user", "manager", "admin")}


@pytest.fixture
def login(client):
    """Log in through the API; returns the token response."""

    def _do(email: str, password: str = DEFAULT_PASSWORD, headers: Optional[dict] = None) -> dict:
        return _login(client, email, password, headers)

    return _do


@pytest.fixture
def bearer():
    return _bearer


@pytest.fixture
def session_factory():
    return TestingSessionLocal

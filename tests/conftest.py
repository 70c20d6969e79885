from __future__ import annotations

import os

# Configure before anything imports fleetdesk.config
os.environ["FLEETDESK_DATABASE_URL"] = "sqlite://"
os.environ["FLEETDESK_BCRYPT_ROUNDS"] = "4"
os.environ["FLEETDESK_GEOCODE_ENABLED"] = "false"
os.environ["FLEETDESK_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["FLEETDESK_LOG_JSON"] = "false"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

import fleetdesk.models  # noqa: F401
from fleetdesk.database import SessionLocal, engine
from fleetdesk.main import app
from fleetdesk.models.base import Base
from fleetdesk.models.project import Project
from fleetdesk.services.auth import AuthService, AuthSession

PASSWORD = "correct-horse"


class FrozenClock:
    """Callable clock for services; advance() moves it forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_employee(db):
    def _make(email: str, role: str = "employee", full_name: str | None = None) -> AuthSession:
        employee = AuthService(db).create_employee(
            email,
            full_name or email.split("@")[0].title(),
            password=PASSWORD,
            role=role,
        )
        db.commit()
        return AuthSession.from_employee(employee)

    return _make


@pytest.fixture
def employee(make_employee) -> AuthSession:
    return make_employee("anna@example.se", full_name="Anna Andersson")


@pytest.fixture
def admin(make_employee) -> AuthSession:
    return make_employee("admin@example.se", role="admin", full_name="Ada Admin")


@pytest.fixture
def manager(make_employee) -> AuthSession:
    return make_employee("maja@example.se", role="manager", full_name="Maja Manager")


@pytest.fixture
def make_project(db):
    def _make(code: str, **fields) -> Project:
        project = Project(project_code=code, name=fields.pop("name", f"Project {code}"), **fields)
        db.add(project)
        db.commit()
        return project

    return _make


@pytest.fixture
def project(make_project) -> Project:
    return make_project("P-100", customer="Acme AB")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 7, 0))


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def login(client: TestClient, email: str, password: str = PASSWORD) -> dict[str, str]:
    response = client.post("/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['session_token']}"}


@pytest.fixture
def login_as(client):
    def _login(session: AuthSession) -> dict[str, str]:
        return login(client, session.email)

    return _login

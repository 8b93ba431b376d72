# backend/tests/conftest.py

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from advocate.core.config import settings
from advocate.core.security import create_access_token, get_password_hash
from advocate.db.base import Base
from advocate.db.session import get_db, get_session_factory
from advocate.main import app
from advocate.models import User, UserRole
from advocate.services import appointment_service


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


# --------------------------------------------------
# Users
# --------------------------------------------------

def make_user(db, email, role, first_name, last_name="Tester"):
    user = User(
        email=email,
        hashed_password=get_password_hash("password123"),
        role=role.value,
        first_name=first_name,
        last_name=last_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers_for(user):
    token = create_access_token(user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client_user(db_session):
    return make_user(db_session, "carol@example.com", UserRole.CLIENT, "Carol")


@pytest.fixture
def lawyer_user(db_session):
    return make_user(db_session, "larry@example.com", UserRole.LAWYER, "Larry")


@pytest.fixture
def other_user(db_session):
    return make_user(db_session, "olivia@example.com", UserRole.CLIENT, "Olivia")


@pytest.fixture
def client_headers(client_user):
    return auth_headers_for(client_user)


@pytest.fixture
def lawyer_headers(lawyer_user):
    return auth_headers_for(lawyer_user)


@pytest.fixture
def other_headers(other_user):
    return auth_headers_for(other_user)


# --------------------------------------------------
# Appointments
# --------------------------------------------------

@pytest.fixture
def pending_appointment(db_session, client_user, lawyer_user):
    event = appointment_service.create_appointment(
        db_session,
        client_user,
        lawyer_id=lawyer_user.id,
        proposed_date=date(2024, 6, 1),
        proposed_time="10:00",
        reason="Need advice on a rental contract dispute",
    )
    return event.appointment


@pytest.fixture
def confirmed_appointment(db_session, pending_appointment, lawyer_user):
    event = appointment_service.accept_appointment(db_session, pending_appointment.id, lawyer_user)
    return event.appointment


@pytest.fixture
def completed_appointment(db_session, confirmed_appointment, lawyer_user):
    event = appointment_service.complete_appointment(db_session, confirmed_appointment.id, lawyer_user)
    return event.appointment

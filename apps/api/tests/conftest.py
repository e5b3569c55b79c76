"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, created and dropped per test
- User/student/service request factories
- Bearer tokens and HTTPX AsyncClients per role
- Captured realtime emissions and outgoing email
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Generator

# Must be set before the app (and its settings) are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["EMAIL_PROVIDER_API_KEY"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db
from app.core.security import create_access_token, hash_password
from app.db import models  # noqa: F401  (register tables)
from app.db.base import Base
from app.db.enums import Role, ServiceRequestStatus, ServiceType
from app.db.models import ServiceRequest, Student, User
from app.db.session import SessionLocal, engine
from app.main import app
from app.schemas.auth import UserSession
from app.services import email_service, realtime_events, service_request_service

TEST_PASSWORD = "correct-horse-battery"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; the app shares this session through get_db."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# =============================================================================
# Side-effect capture
# =============================================================================

@pytest.fixture(autouse=True)
def realtime_log(monkeypatch) -> list[dict]:
    """Record every realtime emission instead of sending it."""
    emitted: list[dict] = []

    def fake_dispatch(rooms, event, data):
        emitted.append({"rooms": list(rooms), "event": event, "data": data})

    monkeypatch.setattr(realtime_events, "_dispatch", fake_dispatch)
    return emitted


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch) -> list[dict]:
    """Record outgoing email and report success."""
    sent: list[dict] = []

    def fake_send_email(**kwargs):
        sent.append(kwargs)
        return {"success": True, "id": f"test-{len(sent)}"}

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return sent


@pytest.fixture(autouse=True)
def local_storage(tmp_path, monkeypatch) -> str:
    path = str(tmp_path / "uploads")
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "local")
    monkeypatch.setattr(settings, "LOCAL_STORAGE_PATH", path)
    return path


# =============================================================================
# Factories
# =============================================================================

@dataclass
class TestActor:
    """A persisted user plus the bearer token that authenticates as them."""
    user: User
    token: str
    student: Student | None = None

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def _make_user(db: Session, role: Role, first_name: str, **student_fields) -> TestActor:
    user = User(
        id=uuid.uuid4(),
        email=f"{role.value}-{uuid.uuid4().hex[:8]}@test.com",
        password_hash=hash_password(TEST_PASSWORD),
        role=role.value,
        first_name=first_name,
        last_name="Tester",
    )
    db.add(user)
    db.flush()

    student = None
    if role == Role.STUDENT:
        student = Student(user_id=user.id, **student_fields)
        db.add(student)
    db.commit()
    db.refresh(user)
    if student:
        db.refresh(student)
    return TestActor(user=user, token=create_access_token(user.id, user.role), student=student)


@pytest.fixture
def make_user(db: Session) -> Callable[..., TestActor]:
    def factory(role: Role, first_name: str | None = None, **student_fields) -> TestActor:
        return _make_user(db, role, first_name or role.value.title(), **student_fields)
    return factory


@pytest.fixture
def admin(make_user) -> TestActor:
    return make_user(Role.SUPER_ADMIN, "Ada")


@pytest.fixture
def counselor(make_user) -> TestActor:
    return make_user(Role.COUNSELOR, "Cora")


@pytest.fixture
def agent(make_user) -> TestActor:
    return make_user(Role.AGENT, "Alan")


@pytest.fixture
def student(make_user) -> TestActor:
    return make_user(Role.STUDENT, "Sam")


@pytest.fixture
def agent_student(make_user, agent: TestActor) -> TestActor:
    """A student referred by (and assigned to) ``agent``."""
    return make_user(
        Role.STUDENT,
        "Riya",
        referred_by_id=agent.user.id,
        assigned_agent_id=agent.user.id,
    )


@pytest.fixture
def make_service_request(db: Session) -> Callable[..., ServiceRequest]:
    """
    Insert a case directly in a given state, bypassing the lifecycle so tests
    can start from any status.
    """
    def factory(
        student: TestActor,
        status: ServiceRequestStatus = ServiceRequestStatus.PENDING_ADMIN_ASSIGNMENT,
        service_type: ServiceType = ServiceType.PROFILE_ASSESSMENT,
        counselor: TestActor | None = None,
        agent: TestActor | None = None,
        progress: int = 5,
        **fields,
    ) -> ServiceRequest:
        sr = ServiceRequest(
            student_id=student.student.id,
            service_type=service_type.value,
            status=status.value,
            progress=progress,
            assigned_counselor_id=counselor.user.id if counselor else None,
            assigned_agent_id=agent.user.id if agent else None,
            documents=[],
            meta={},
            **fields,
        )
        db.add(sr)
        db.commit()
        db.refresh(sr)
        return sr
    return factory


@pytest.fixture
def assigned_case(db: Session, make_service_request, student: TestActor, counselor: TestActor, admin: TestActor):
    """A case assigned to ``counselor`` through the real assignment flow."""
    sr = make_service_request(student)
    session = session_for(admin)
    return service_request_service.assign(db, sr, session, counselor_id=counselor.user.id)


def session_for(actor: TestActor) -> UserSession:
    """The UserSession the auth dependency would build for ``actor``."""
    return UserSession(
        user_id=actor.user.id,
        role=Role(actor.user.role),
        email=actor.user.email,
        display_name=actor.user.display_name,
        student_id=actor.student.id if actor.student else None,
    )


@pytest.fixture
def as_session() -> Callable[[TestActor], UserSession]:
    return session_for


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient bound to the test database. Authenticate per request with
    ``headers=actor.headers``.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def test_password() -> str:
    """Plain-text password of every factory-made user."""
    return TEST_PASSWORD

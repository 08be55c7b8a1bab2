"""Pytest configuration and fixtures."""

import os

# Cheap hashes and a fixed signing key; must be set before app modules load settings.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("APP_KEY", "test-app-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import database
from app.clock import utcnow
from app.database import Base, get_db
from app.models import PasswordResetToken, PersonalAccessToken, User  # noqa: F401
from app.services import events as events_module
from app.services import mailer as mailer_module
from app.services.auth import AuthService, register_listeners
from app.services.mailer import MailMessage, Mailer

TEST_PASSWORD = "Secr3t!23"


class OutboxTransport:
    """Collects messages instead of sending them."""

    def __init__(self) -> None:
        self.messages: list[MailMessage] = []

    def send(self, message: MailMessage) -> None:
        self.messages.append(message)

    def to(self, address: str) -> list[MailMessage]:
        return [m for m in self.messages if m.to == address]


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="testing_session_local")
def testing_session_local_fixture(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(name="db_session")
def db_session_fixture(testing_session_local):
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(name="outbox")
def outbox_fixture():
    """Swap the mailer for one that delivers inline into a list."""
    transport = OutboxTransport()
    mailer_module._mailer = Mailer(transport, background=False)
    yield transport
    mailer_module._mailer = None


@pytest.fixture(name="dispatcher", autouse=True)
def dispatcher_fixture():
    """Fresh event dispatcher with the default listeners for every test."""
    dispatcher = events_module.EventDispatcher()
    register_listeners(dispatcher)
    events_module._event_dispatcher = dispatcher
    yield dispatcher
    events_module._event_dispatcher = None


@pytest.fixture(name="client")
def client_fixture(db_session: Session, outbox: OutboxTransport, testing_session_local, monkeypatch):
    """Create a test client with overridden DB dependency and disabled rate limiting."""
    import main
    from app.rate_limit import limiter

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    # Startup maintenance opens its own session on the test database
    monkeypatch.setattr(database, "SessionLocal", testing_session_local)

    main.app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(main.app) as c:
        yield c
    limiter.enabled = True
    main.app.dependency_overrides.clear()


def create_user(db: Session, email: str, password: str = TEST_PASSWORD, name: str = "Test User", verified: bool = True):
    """Register a user through the service, optionally marking the email verified."""
    user = AuthService().register(db, name, email, password)
    if verified:
        user.email_verified_at = utcnow()
        db.commit()
        db.refresh(user)
    return user


@pytest.fixture(name="make_user")
def make_user_fixture(db_session: Session, outbox: OutboxTransport):
    """Factory for extra users: make_user(email, verified=True)."""

    def make(email: str, password: str = TEST_PASSWORD, name: str = "Test User", verified: bool = True):
        return create_user(db_session, email, password=password, name=name, verified=verified)

    return make


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session, outbox: OutboxTransport):
    """A verified user. Returns a dict with the model and the plaintext password."""
    user = create_user(db_session, "test@example.com")
    return {"user": user, "email": user.email, "password": TEST_PASSWORD, "ulid": user.ulid}


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(client: TestClient, test_user: dict) -> dict:
    """Log the test user in and return an Authorization header."""
    response = client.post(
        "/api/v1/auth/login",
        json={"email": test_user["email"], "password": test_user["password"]},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}

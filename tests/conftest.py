"""
Test configuration and fixtures.

Every test gets a fresh in-memory database. Each client built by
``make_client`` has its own cookie jar, so two clients act as two users.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "10"
os.environ["ENVIRONMENT"] = "development"
os.environ.pop("GOOGLE_CLIENT_ID", None)
os.environ.pop("GOOGLE_CLIENT_SECRET", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from recordbook.db.base import Base  # noqa: E402
from recordbook.db.sessions import get_db, init_db  # noqa: E402
from recordbook.main import app  # noqa: E402


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """Database session for tests that call services directly."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_client(session_factory):
    """Factory for test clients bound to the test database."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    clients = []

    def _make() -> TestClient:
        client = TestClient(app)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.close()
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    """Anonymous test client."""
    return make_client()


@pytest.fixture
def register():
    """Register a user through the API; the client keeps the session cookie."""

    def _register(client, username="alice", email=None, password="Password123!"):
        response = client.post(
            "/user/register",
            json={
                "username": username,
                "email": email or f"{username}@test.com",
                "password": password,
            },
        )
        assert response.status_code == 201, response.text
        return response.json()["userId"]

    return _register


@pytest.fixture
def alice(make_client, register):
    """Logged-in client for user ``alice`` and its user id."""
    client = make_client()
    return client, register(client, "alice")


@pytest.fixture
def bob(make_client, register):
    """Logged-in client for user ``bob`` and its user id."""
    client = make_client()
    return client, register(client, "bob")

"""Pytest configuration and fixtures."""

import base64
import io
import os
import tempfile

# Settings are read at import time, so the environment is prepared before any app import
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="account-api-uploads-"))
os.environ["TOKEN_SWEEP_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""

import bcrypt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base, get_db  # noqa: E402
from app.models.user import User  # noqa: E402

PASSWORD = "P4ssword"
# Hashing is slow; every fixture user shares one hash
PASSWORD_HASH = bcrypt.hashpw(PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite engine shared by every session in a test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(name="session_factory")
def session_factory_fixture(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(name="db_session")
def db_session_fixture(session_factory):
    """Open a session on the in-memory database."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(name="client")
def client_fixture(db_session: Session):
    """Create a test client with overridden DB dependency and disabled rate limiting."""
    from app.rate_limit import limiter
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(db_session: Session):
    """Return a factory inserting users directly, bypassing registration."""

    def _make_user(
        username: str = "user1",
        email: str = "user1@mail.com",
        active: bool = True,
        **fields,
    ) -> User:
        user = User(username=username, email=email, password_hash=PASSWORD_HASH, active=active, **fields)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture(name="test_user")
def test_user_fixture(make_user) -> User:
    """An active user with password ``PASSWORD``."""
    return make_user()


@pytest.fixture(name="login")
def login_fixture(client: TestClient):
    """Return a helper that logs in over the API and returns the session token."""

    def _login(email: str = "user1@mail.com", password: str = PASSWORD) -> str:
        response = client.post("/api/1.0/auth", json={"email": email, "password": password})
        assert response.status_code == 200
        return response.json()["token"]

    return _login


@pytest.fixture(name="image_base64")
def image_base64_fixture():
    """Return a helper encoding a small generated image in the given Pillow format."""

    def _image_base64(image_format: str = "JPEG") -> str:
        buffer = io.BytesIO()
        Image.new("RGB", (8, 8), color=(200, 40, 40)).save(buffer, format=image_format)
        return base64.b64encode(buffer.getvalue()).decode("ascii")

    return _image_base64

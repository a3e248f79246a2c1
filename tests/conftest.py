"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.models.user import User  # noqa: F401
from app.services.account import AccountService


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="media_dir")
def media_dir_fixture(tmp_path, monkeypatch):
    """Point the media service and the /media mount at a temporary directory."""
    import main
    from app.services import media as media_module

    root = tmp_path / "media"
    root.mkdir()
    media_module._media_service = media_module.MediaService(root=root, url_prefix="/media")
    monkeypatch.setattr(main.media_files, "all_directories", [str(root)])
    yield root
    media_module._media_service = None


@pytest.fixture(name="client")
def client_fixture(db_session: Session, media_dir):
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


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session):
    """Create a test user and return its data plus a session token."""
    from app.services.jwt import get_jwt_service

    result = AccountService().create_account(db_session, "Test User", "test@example.com", "password123")
    user = result.user
    token = get_jwt_service().create_user_token(user)

    return {
        "user_id": user.id,
        "email": user.email,
        "name": user.name,
        "token": token,
        "headers": {"Authorization": f"Bearer {token}"},
    }

import os

# Must be set before tafara modules import: the engine and master key are
# created at import time.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_SECRET_KEY", "dGVzdC1tYXN0ZXIta2V5LWZvci10YWZhcmEtdGVzdHM=")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tafara.app import main
from tafara.services import models
from tafara.services.auth import AuthError, AuthUser
from tafara.services.secrets import store_api_key
from tafara.services.settings import get_settings


@pytest.fixture(autouse=True)
def fresh_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("TAFARA_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("SHARED_API_KEY", "sk-or-shared")
    monkeypatch.setenv("PRESET_EMAILS", "preset@example.com")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def session_factory():
    # In-memory SQLite shared across connections
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_auth(monkeypatch):
    """Accept tokens of the form "token-<user id>"; record every check."""
    calls = []

    async def fake_verify_session(token):
        calls.append(token)
        if not token or not token.startswith("token-"):
            raise AuthError("bad token")
        user_id = token[len("token-"):]
        return AuthUser(id=user_id, email=f"{user_id}@example.com")

    monkeypatch.setattr(main, "verify_session", fake_verify_session)
    return calls


@pytest.fixture
def client(session_factory, fake_auth):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[main.get_db] = override_get_db
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_profile(session_factory):
    def _make(user_id, username, api_key=None, preset=False):
        db = session_factory()
        try:
            profile = models.UserProfile(
                id=user_id,
                username=username,
                email=f"{user_id}@example.com",
                is_preset_account=preset,
            )
            store_api_key(profile, api_key)
            db.add(profile)
            db.commit()
        finally:
            db.close()

    return _make

from datetime import date
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from medportal.auth import Session, create_token
from medportal.config import Settings, get_settings
from medportal.database import Database
from medportal.exceptions import ServiceUnavailable
from medportal.roles import Role
from medportal.store import RecordStore

TODAY = date(2024, 6, 1)


@pytest.fixture(autouse=True)
def portal_env(monkeypatch):
    """Development mode, no persistence, no oracle credentials unless a test says otherwise."""

    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DATABASE_URL", "")
    monkeypatch.setenv("JWT_SECRET_KEY", "test-jwt-secret")
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("SESSION_FILE", "")
    monkeypatch.setenv("ORACLE_PROVIDER", "gemini")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "development",
        "database_url": "",
        "oracle_provider": "gemini",
        "gemini_api_key": "",
        "aws_access_key_id": "",
        "aws_secret_access_key": "",
    }
    values.update(overrides)
    return Settings(**values)


def make_session(role: Role, session_id: str = None, is_demo: bool = False, name: str = None) -> Session:
    return Session(
        id=session_id or f"user-{role.value}",
        email=f"{role.value}@example.org",
        role=role,
        name=name or f"Test {role.value.title()}",
        is_demo=is_demo,
    )


def auth_header(session: Session) -> dict:
    return {"Authorization": f"Bearer {create_token(session)}"}


class RaisingStore(RecordStore):
    """A configured store whose every call fails like an unreachable service."""

    def __init__(self, error: Exception = None):
        super().__init__(database=None)
        self.error = error or ServiceUnavailable("connection refused")
        self.calls = []

    @property
    def is_configured(self) -> bool:
        return True

    async def select(self, collection, **kwargs):
        self.calls.append(("select", collection))
        raise self.error

    async def get(self, collection, record_id):
        self.calls.append(("get", collection))
        raise self.error

    async def insert(self, collection, values):
        self.calls.append(("insert", collection))
        raise self.error

    async def update(self, collection, record_id, values):
        self.calls.append(("update", collection))
        raise self.error


@pytest.fixture
async def sqlite_store(tmp_path) -> RecordStore:
    """A real RecordStore on a throwaway SQLite file."""

    store = RecordStore(Database(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}"))
    await store.create_schema()
    try:
        yield store
    finally:
        await store.close()


@pytest.fixture
def unconfigured_store() -> RecordStore:
    return RecordStore(database=None)


@pytest.fixture
def api_client() -> Iterator[TestClient]:
    """FastAPI test client running the real lifespan against an unconfigured store."""

    from medportal.main import app

    with TestClient(app) as client:
        yield client

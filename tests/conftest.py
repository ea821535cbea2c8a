"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports ``dentserve`` so the
settings object is built from test values and no .env file is loaded.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("RECAPTCHA_SECRET_KEY", "test-recaptcha-secret")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("EMAIL_RESEND_API_KEY", "test-resend-key")
os.environ.setdefault("APP_FRONTEND_URL", "http://localhost:5173")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import asyncio
from typing import Callable, Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dentserve.adapters.database.base import AbstractDatabaseClient, SelectResult
from dentserve.adapters.storage.base import AbstractImageStorage, StoredImage, object_key
from dentserve.api import deps
from dentserve.core.app_factory import create_app
from dentserve.core.auth import get_current_user
from dentserve.core.rate_limit import reset_rate_limiters
from dentserve.schemas.auth import CurrentUser


@pytest.fixture(autouse=True)
def _reset_shared_state() -> Iterator[None]:
    deps.action_throttle.reset()
    deps.dashboard_cache.clear()
    reset_rate_limiters()
    yield
    deps.action_throttle.reset()
    deps.dashboard_cache.clear()
    reset_rate_limiters()


@pytest.fixture
def make_user() -> Callable[..., CurrentUser]:
    def _make(role: str = "patient", **overrides) -> CurrentUser:
        values = {
            "auth_user_id": f"auth-{role}",
            "user_id": f"user-{role}",
            "user_profile_id": f"profile-{role}",
            "email": f"{role}@example.com",
            "role": role,
            "first_name": "Ana",
            "last_name": "Cruz",
            "email_confirmed": True,
            "access_token": f"token-{role}",
        }
        values.update(overrides)
        return CurrentUser(**values)

    return _make


@pytest.fixture
def fake_db() -> AsyncMock:
    db = AsyncMock(spec=AbstractDatabaseClient)
    db.select.return_value = SelectResult(rows=[], count=None)
    return db


class RecordingStorage(AbstractImageStorage):
    """In-memory storage that records uploads and deletes.

    ``gate`` holds uploads until set; ``on_upload`` runs just before an
    upload returns.
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.started = asyncio.Event()
        self.gate: asyncio.Event | None = None
        self.on_upload: Callable[[], None] | None = None

    async def upload(self, data: bytes, *, folder: str, name: str, content_type: str) -> StoredImage:
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        key = object_key(folder, name, content_type)
        if self.on_upload is not None:
            self.on_upload()
        self.objects[key] = data
        return StoredImage(public_id=key, url=f"https://cdn.test/{key}")

    async def delete(self, public_id: str) -> None:
        self.deleted.append(public_id)
        self.objects.pop(public_id, None)


@pytest.fixture
def fake_storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def app(fake_db: AsyncMock, fake_storage: RecordingStorage) -> Iterator[FastAPI]:
    application = create_app()
    application.dependency_overrides[deps.get_database_client] = lambda: fake_db
    application.dependency_overrides[deps.get_image_storage] = lambda: fake_storage
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def login_as(app: FastAPI, make_user: Callable[..., CurrentUser]) -> Callable[..., CurrentUser]:
    """Bypass token verification and authenticate requests as a given user."""

    def _login(role: str = "patient", **overrides) -> CurrentUser:
        user = make_user(role, **overrides)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login

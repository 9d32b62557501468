from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi import HTTPException, status
from fastapi.testclient import TestClient

import hirelink.core.security as security
from hirelink.core.config import get_settings
from hirelink.main import app
from hirelink.services.fanout import SessionRegistry, get_session_registry
from hirelink.services.mailer import get_mailer
from hirelink.services.memory_store import InMemoryRepository
from hirelink.services.repository import get_repository

EMPLOYER_ID = 101
WORKER_ID = 202
AGENCY_ID = 303
ADMIN_ID = 404

IDENTITIES: dict[str, dict[str, Any]] = {
    "employer-token": {
        "id": "auth-employer",
        "app_metadata": {"role": "business-employer", "participant_id": EMPLOYER_ID},
    },
    "worker-token": {
        "id": "auth-worker",
        "app_metadata": {"role": "jobseeker", "participant_id": WORKER_ID},
    },
    "agency-token": {
        "id": "auth-agency",
        "app_metadata": {"role": "manpower-provider", "participant_id": str(AGENCY_ID)},
    },
    "admin-token": {
        "id": "auth-admin",
        "app_metadata": {"role": "administrator", "participant_id": ADMIN_ID},
    },
    "unlinked-token": {
        "id": "auth-unlinked",
        "app_metadata": {"role": "jobseeker"},
    },
    "self-promoted-token": {
        "id": "auth-self-promoted",
        "app_metadata": {"participant_id": 505},
        "user_metadata": {"role": "administrator"},
    },
}


class RecordingSession:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self) -> list[str]:
        return [item["event"] for item in self.sent]


class RecordingMailer:
    enabled = True

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send(self, *, to: str, subject: str, html_content: str, to_name: str | None = None) -> bool:
        self.sent.append({"to": to, "subject": subject, "html": html_content, "to_name": to_name})
        return True


@pytest.fixture
def repository() -> InMemoryRepository:
    repo = InMemoryRepository()
    repo.register_participant(
        EMPLOYER_ID,
        role="business-employer",
        email="hr@acme.example",
        display_name="Acme Builders",
    )
    repo.register_participant(WORKER_ID, role="jobseeker", email="juan@example.com", display_name="Juan Dela Cruz")
    repo.register_participant(
        AGENCY_ID,
        role="manpower-provider",
        email="ops@northside.example",
        display_name="Northside Manpower",
    )
    repo.register_participant(ADMIN_ID, role="administrator", display_name="Ops Admin")
    return repo


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def mock_identities(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _fake_fetch(*, token: str, **_: Any) -> dict[str, Any]:
        user = IDENTITIES.get(token)
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")
        return user

    monkeypatch.setattr(security, "_fetch_supabase_user", _fake_fetch)


@pytest.fixture
def api_client(
    monkeypatch: pytest.MonkeyPatch,
    mock_identities: None,
    repository: InMemoryRepository,
    registry: SessionRegistry,
    mailer: RecordingMailer,
) -> Iterator[TestClient]:
    monkeypatch.setenv("HL_SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("HL_SUPABASE_ANON_KEY", "anon-key")
    get_settings.cache_clear()

    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_session_registry] = lambda: registry
    app.dependency_overrides[get_mailer] = lambda: mailer

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    get_settings.cache_clear()


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _headers(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_session() -> Callable[..., RecordingSession]:
    return RecordingSession

from __future__ import annotations

from collections.abc import Generator
import inspect
import logging
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wemadeit.core.auth import get_current_user
from wemadeit.core.config import get_settings
from wemadeit.core.database import Base, get_db
from wemadeit.main import app
from wemadeit.middleware.rate_limit import reset_rate_limiter


ADMIN_EMAIL = "owner@example.com"
ADMIN_PASSWORD = "owner-pass"


@pytest.fixture()
def session_factory() -> Generator[sessionmaker[Session], None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    monkeypatch.setenv("SEED_ON_STARTUP", "true")
    monkeypatch.setenv("ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("UI_SETTINGS_PATH", str(tmp_path / "settings.json"))
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def client(
    db_session: Session,
    session_factory: sessionmaker[Session],
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    monkeypatch.setattr("wemadeit.main.SessionLocal", session_factory)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _login(client: TestClient, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> dict[str, str]:
    response = client.post("/api/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


def test_login_and_me(client: TestClient) -> None:
    response = client.post("/api/login", json={"email": ADMIN_EMAIL.upper(), "password": ADMIN_PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["user"]["role"] == "admin"

    me = client.get("/api/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["email_address"] == ADMIN_EMAIL
    assert me.json()["id"] == body["user"]["id"]


def test_login_failures(client: TestClient) -> None:
    missing = client.post("/api/login", json={"email": ADMIN_EMAIL})
    assert missing.status_code == 400
    assert missing.json()["code"] == "auth_login_failed"
    assert missing.json()["message"] == "email and password are required"

    wrong = client.post("/api/login", json={"email": ADMIN_EMAIL, "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json()["message"] == "invalid credentials"


def test_unauthenticated_requests_get_envelope(client: TestClient) -> None:
    response = client.get("/api/me", headers={"X-Correlation-Id": "corr-401"})

    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "unauthorized"
    assert body["correlation_id"] == "corr-401"

    bogus = client.get("/api/crm/state", headers={"Authorization": "Bearer not-a-token"})
    assert bogus.status_code == 401


def test_seeded_data_is_visible_after_login(client: TestClient) -> None:
    headers = _login(client)

    state = client.get("/api/crm/state", headers=headers).json()

    assert [organization["name"] for organization in state["organizations"]] == ["Example Studio"]
    assert [stage["name"] for stage in state["pipeline_stages"]] == ["Lead", "Qualified", "Proposal", "Won", "Lost"]
    assert state["pipelines"][0]["is_default"] is True


def test_logout_revokes_token(client: TestClient) -> None:
    headers = _login(client)

    assert client.post("/api/logout", headers=headers).json() == {"ok": True}
    assert client.get("/api/me", headers=headers).status_code == 401


def test_user_management_is_admin_only(client: TestClient) -> None:
    admin_headers = _login(client)

    created = client.post(
        "/api/users",
        json={"email_address": "Dev@Example.com", "name": "Dev", "role": "developer", "password": "dev-pass"},
        headers=admin_headers,
    )
    assert created.status_code == 200
    assert created.json()["email_address"] == "dev@example.com"

    duplicate = client.post(
        "/api/users",
        json={"email_address": "dev@example.com", "name": "Dev 2", "password": "x"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "auth_user_put_failed"

    dev_headers = _login(client, "dev@example.com", "dev-pass")
    forbidden = client.get("/api/users", headers=dev_headers)
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "forbidden"
    assert forbidden.json()["message"] == "Missing role: admin"

    users = client.get("/api/users", headers=admin_headers).json()
    assert {user["email_address"] for user in users} == {ADMIN_EMAIL, "dev@example.com"}
    assert all("password_hash" not in user for user in users)


def test_deleting_user_revokes_sessions(client: TestClient) -> None:
    admin_headers = _login(client)
    created = client.post(
        "/api/users",
        json={"email_address": "temp@example.com", "name": "Temp", "password": "temp-pass"},
        headers=admin_headers,
    ).json()
    temp_headers = _login(client, "temp@example.com", "temp-pass")

    response = client.delete(f"/api/users?id={created['id']}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"ok": True, "deleted": [created["id"]]}
    assert client.get("/api/me", headers=temp_headers).status_code == 401


def test_admin_cannot_delete_self(client: TestClient) -> None:
    headers = _login(client)
    me = client.get("/api/me", headers=headers).json()

    response = client.delete(f"/api/users/{me['id']}", headers=headers)

    assert response.status_code == 400
    assert response.json()["code"] == "auth_user_delete_failed"
    assert response.json()["message"] == "cannot delete your own user"
    assert client.get("/api/me", headers=headers).status_code == 200


def test_settings_hide_keys_and_normalize_theme(client: TestClient) -> None:
    headers = _login(client)

    updated = client.post(
        "/api/settings",
        json={"theme": "OCEAN", "openai_key": "sk-test", "max_tokens": 0, "model": "  "},
        headers=headers,
    )

    assert updated.status_code == 200
    body = updated.json()
    assert body["theme"] == "ocean"
    assert body["has_openai_key"] is True
    assert body["has_anthropic_key"] is False
    assert "openai_key" not in body
    assert body["max_tokens"] == 400
    assert body["model"] == "gpt-4o-mini"

    fetched = client.get("/api/settings", headers=headers).json()
    assert fetched == body

    unknown_theme = client.post("/api/settings", json={"theme": "neon"}, headers=headers).json()
    assert unknown_theme["theme"] == "sand"


def test_session_lookup_runs_as_sync_dependency() -> None:
    assert not inspect.iscoroutinefunction(get_current_user)


def test_request_log_names_authenticated_user(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    headers = _login(client)
    me = client.get("/api/me", headers=headers).json()

    caplog.set_level(logging.INFO)
    response = client.get("/api/crm/organizations", headers=headers)
    assert response.status_code == 200

    records = [
        record
        for record in caplog.records
        if record.name == "wemadeit.request" and getattr(record, "path", None) == "/api/crm/organizations"
    ]
    assert records
    assert records[-1].actor_user_id == me["id"]

from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wemadeit import audit
from wemadeit.auth.models import User
from wemadeit.core.auth import AuthUser, get_current_user as auth_get_current_user
from wemadeit.core.config import get_settings
from wemadeit.core.database import Base, get_db
from wemadeit.main import app
from wemadeit.middleware.rate_limit import reset_rate_limiter


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    monkeypatch.setenv("SEED_ON_STARTUP", "false")
    monkeypatch.setenv("AUTO_CREATE_SCHEMA", "false")
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("UI_SETTINGS_PATH", str(tmp_path / "settings.json"))
    audit.audit_entries.clear()
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    audit.audit_entries.clear()
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def admin_id(db_session: Session) -> str:
    user = User(email_address="admin@example.com", name="Admin", role="admin", password_hash="x")
    db_session.add(user)
    db_session.commit()
    return user.id


@pytest.fixture()
def client(db_session: Session, admin_id: str) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return AuthUser(sub=admin_id, email_address="admin@example.com", name="Admin", role="admin", token="test")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[auth_get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _post(client: TestClient, path: str, payload: dict) -> dict:
    response = client.post(f"/api/crm/{path}", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def _organization_graph(client: TestClient, name: str = "Acme") -> dict[str, str]:
    organization = _post(client, "organizations", {"name": name})
    contact = _post(client, "contacts", {"organization_id": organization["id"], "first_name": "Ada"})
    deal = _post(
        client,
        "deals",
        {"organization_id": organization["id"], "contact_id": contact["id"], "title": f"{name} site"},
    )
    return {"organization_id": organization["id"], "contact_id": contact["id"], "deal_id": deal["id"]}


def test_quotation_flow_and_organization_cascade(client: TestClient) -> None:
    pipeline = _post(
        client,
        "pipelines",
        {
            "name": "Sales",
            "is_default": True,
            "stages": [{"name": "Lead", "color": "#CF8445"}, {"name": "Won", "probability": 100}],
        },
    )
    assert [stage["name"] for stage in pipeline["stages"]] == ["Lead", "Won"]

    organization = _post(client, "organizations", {"name": "Acme"})
    contact = _post(client, "contacts", {"organization_id": organization["id"], "first_name": "Ada"})
    deal = _post(
        client,
        "deals",
        {
            "organization_id": organization["id"],
            "contact_id": contact["id"],
            "pipeline_stage_id": "",
            "title": "Website",
            "value": 5000,
        },
    )
    assert deal["pipeline_stage_id"] == pipeline["stages"][0]["id"]

    quotation = _post(
        client,
        "quotations",
        {"deal_id": deal["id"], "title": "Proposal", "tax_rate": 10, "discount_amount": 5},
    )
    assert quotation["number"] == f"QUO-{datetime.now(timezone.utc).year}-001"
    assert quotation["total"] == -5.0

    _post(client, "quotation-items", {"quotation_id": quotation["id"], "name": "Design", "quantity": 2, "unit_price": 50})
    _post(client, "quotation-items", {"quotation_id": quotation["id"], "name": "Hosting", "quantity": 1, "unit_price": 25})

    refreshed = client.get(f"/api/crm/quotations/{quotation['id']}").json()
    assert refreshed["subtotal"] == 125.0
    assert refreshed["tax_amount"] == 12.5
    assert refreshed["total"] == 132.5

    deleted = client.delete(f"/api/crm/organizations/{organization['id']}")
    assert deleted.status_code == 200
    assert deleted.json() == {"ok": True, "deleted": [organization["id"]]}

    state = client.get("/api/crm/state").json()
    for key in ("organizations", "contacts", "deals", "quotations", "quotation_items", "interactions"):
        assert state[key] == []
    assert len(state["pipelines"]) == 1
    assert len(state["pipeline_stages"]) == 2


def test_missing_entity_returns_error_envelope(client: TestClient) -> None:
    response = client.get("/api/crm/organizations/missing", headers={"X-Correlation-Id": "corr-404"})

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "crm_organization_get_failed"
    assert body["message"] == "organization not found"
    assert body["correlation_id"] == "corr-404"


def test_invalid_payload_is_rejected(client: TestClient) -> None:
    response = client.post("/api/crm/organizations", json={"name": ""})

    assert response.status_code == 422


def test_write_with_unknown_parent_is_rejected(client: TestClient) -> None:
    response = client.post("/api/crm/contacts", json={"organization_id": "missing", "first_name": "Ada"})

    assert response.status_code == 404
    assert response.json()["code"] == "crm_contact_put_failed"
    assert response.json()["message"] == "organization not found"


def test_batch_delete_by_ids(client: TestClient) -> None:
    first = _post(client, "organizations", {"name": "First"})
    second = _post(client, "organizations", {"name": "Second"})
    third = _post(client, "organizations", {"name": "Third"})

    response = client.delete(f"/api/crm/organizations?ids={first['id']},{second['id']},missing")

    assert response.status_code == 200
    assert response.json()["deleted"] == [first["id"], second["id"], "missing"]
    remaining = client.get("/api/crm/organizations").json()
    assert [organization["id"] for organization in remaining] == [third["id"]]


def test_single_id_takes_precedence_over_ids(client: TestClient) -> None:
    first = _post(client, "organizations", {"name": "First"})
    second = _post(client, "organizations", {"name": "Second"})

    response = client.delete(f"/api/crm/organizations?id={first['id']}&ids={second['id']}")

    assert response.status_code == 200
    assert response.json()["deleted"] == [first["id"]]
    remaining = client.get("/api/crm/organizations").json()
    assert [organization["id"] for organization in remaining] == [second["id"]]


def test_delete_without_ids_is_a_bad_request(client: TestClient) -> None:
    response = client.delete("/api/crm/organizations")

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "crm_organization_delete_failed"
    assert body["message"] == "id or ids is required"


def test_list_filters(client: TestClient) -> None:
    first = _organization_graph(client, "First")
    _organization_graph(client, "Second")

    deals = client.get("/api/crm/deals", params={"organization_id": first["organization_id"]}).json()
    assert [deal["id"] for deal in deals] == [first["deal_id"]]

    open_deals = client.get("/api/crm/deals", params={"status": "open"}).json()
    assert len(open_deals) == 2
    assert client.get("/api/crm/deals", params={"status": "won"}).json() == []


def test_next_quotation_number_endpoint(client: TestClient) -> None:
    graph = _organization_graph(client)
    _post(client, "quotations", {"deal_id": graph["deal_id"], "title": "Old", "number": "QUO-2024-009"})

    response = client.get("/api/crm/quotations/next-number", params={"year": 2024})

    assert response.status_code == 200
    assert response.json() == {"year": 2024, "number": "QUO-2024-010"}


def test_recalculate_endpoint(client: TestClient) -> None:
    graph = _organization_graph(client)
    quotation = _post(client, "quotations", {"deal_id": graph["deal_id"], "title": "Quote"})
    _post(client, "quotation-items", {"quotation_id": quotation["id"], "name": "Work", "quantity": 3, "unit_price": 10})

    response = client.post(f"/api/crm/quotations/{quotation['id']}/recalculate")
    assert response.status_code == 200
    assert response.json()["total"] == 30.0

    missing = client.post("/api/crm/quotations/missing/recalculate")
    assert missing.status_code == 404
    assert missing.json()["code"] == "crm_quotation_recalculate_failed"


def test_quotation_item_delete_updates_totals(client: TestClient) -> None:
    graph = _organization_graph(client)
    quotation = _post(client, "quotations", {"deal_id": graph["deal_id"], "title": "Quote"})
    item = _post(client, "quotation-items", {"quotation_id": quotation["id"], "name": "Work", "unit_price": 40})

    response = client.delete(f"/api/crm/quotation-items/{item['id']}")

    assert response.status_code == 200
    assert client.get(f"/api/crm/quotations/{quotation['id']}").json()["total"] == 0.0


def test_payment_split_validation(client: TestClient) -> None:
    graph = _organization_graph(client)

    response = client.post(
        "/api/crm/payments",
        json={"deal_id": graph["deal_id"], "amount": 100, "gil_amount": 80, "ric_amount": 30},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "crm_payment_put_failed"


def test_pipeline_delete_reassigns_deals(client: TestClient) -> None:
    support = _post(client, "pipelines", {"name": "Support", "stages": [{"name": "Triage"}]})
    sales = _post(client, "pipelines", {"name": "Sales", "is_default": True, "stages": [{"name": "Lead"}]})
    graph = _organization_graph(client)
    assert client.get(f"/api/crm/deals/{graph['deal_id']}").json()["pipeline_stage_id"] == sales["stages"][0]["id"]

    response = client.delete(f"/api/crm/pipelines/{sales['id']}")

    assert response.status_code == 200
    deal = client.get(f"/api/crm/deals/{graph['deal_id']}").json()
    assert deal["pipeline_stage_id"] == support["stages"][0]["id"]
    pipelines = client.get("/api/crm/pipelines").json()
    assert [(pipeline["id"], pipeline["is_default"]) for pipeline in pipelines] == [(support["id"], True)]


def test_writes_are_audited_with_actor(client: TestClient, admin_id: str) -> None:
    organization = _post(client, "organizations", {"name": "Audited"})
    _post(client, "organizations", {"id": organization["id"], "name": "Audited Ltd"})

    entries = audit.entries_for("crm.organization", organization["id"])
    assert [entry["action"] for entry in entries] == ["create", "replace"]
    assert all(entry["actor_user_id"] == admin_id for entry in entries)
    assert entries[-1]["before"]["name"] == "Audited"
    assert entries[-1]["after"]["name"] == "Audited Ltd"


def test_crm_requires_authentication(db_session: Session) -> None:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            response = test_client.get("/api/crm/organizations")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"

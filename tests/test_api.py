# tests/test_api.py

import uuid

import pytest
from fastapi.testclient import TestClient

from notification_service.main import create_app
from notification_service.services.providers import ProviderRegistry

from .conftest import RecordingProvider, make_settings


@pytest.fixture
def email_provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def client(email_provider):
    settings = make_settings(SEED_DEFAULT_TEMPLATES=True, PROMETHEUS_ENABLED=True)
    app = create_app(settings, providers=ProviderRegistry({"email": email_provider}))
    with TestClient(app) as test_client:
        yield test_client


def _send(client, **overrides):
    body = {"recipient": "a@example.com", "type": "email", "subject": "Hi", "content": "Body"}
    body.update(overrides)
    return client.post("/api/v1/notifications", json=body)


def test_send_returns_created_record(client, email_provider) -> None:
    response = _send(client, metadata={"source": "test"})

    assert response.status_code == 201
    data = response.json()
    assert data["delivered"] is True
    assert data["persistence_warning"] is None
    assert data["notification"]["status"] == "sent"
    assert data["notification"]["metadata"] == {"source": "test"}
    assert email_provider.sent == [("a@example.com", "Hi", "Body")]


def test_delivery_failure_is_424_with_record(client, email_provider) -> None:
    email_provider.error = "mailbox full"

    response = _send(client)

    assert response.status_code == 424
    data = response.json()
    assert data["error"] == {"code": "DELIVERY_FAILED", "message": "mailbox full"}
    assert data["notification"]["status"] == "failed"


def test_unsupported_type_is_400(client) -> None:
    response = _send(client, type="fax")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "UNSUPPORTED_TYPE"


def test_missing_recipient_is_422(client) -> None:
    response = _send(client, recipient="")

    assert response.status_code == 422


def test_get_and_list_notifications(client) -> None:
    created = _send(client).json()["notification"]
    _send(client)

    response = client.get(f"/api/v1/notifications/{created['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]

    listed = client.get("/api/v1/notifications", params={"recipient": "a@example.com", "limit": 1})
    assert listed.status_code == 200
    assert len(listed.json()) == 1

    missing = client.get(f"/api/v1/notifications/{uuid.uuid4()}")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"


def test_retry_endpoint(client, email_provider) -> None:
    email_provider.error = "smtp down"
    failed = _send(client).json()["notification"]

    email_provider.error = None
    response = client.post(f"/api/v1/notifications/{failed['id']}/retry")

    assert response.status_code == 200
    assert response.json()["notification"]["status"] == "sent"
    assert response.json()["notification"]["retry_count"] == 1

    again = client.post(f"/api/v1/notifications/{failed['id']}/retry")
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    unknown = client.post(f"/api/v1/notifications/{uuid.uuid4()}/retry")
    assert unknown.status_code == 404


def test_health_endpoints(client) -> None:
    assert client.get("/health").json()["status"] == "healthy"

    detailed = client.get("/health/detailed")
    assert detailed.status_code == 200
    assert detailed.json()["components"]["store"]["status"] == "healthy"
    assert detailed.json()["components"]["store_monitor"]["status"] == "healthy"


def test_metrics_endpoint_exposes_pipeline_counters(client) -> None:
    _send(client)

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "notifications_processed_total" in response.text

"""
test_api.py

HTTP contract of the provisioner API.

Uses FastAPI's TestClient (in-process ASGI transport) with the Dispatcher
dependency swapped for one backed by FakeProviders, so no cloud calls are
made and no credentials are needed.
"""

from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

from api.app import app, get_dispatcher
from providers import (
    ConfigurationError,
    Dispatcher,
    HetznerProvider,
    NotFoundError,
    ProviderName,
    ResourceResolutionError,
    VendorRejection,
)

CREATE_BODY = {
    "name": "my-box",
    "provider": "aws",
    "instanceType": "small",
    "region": "us-east-1",
    "useSpotInstance": True,
    "userId": "user_123",
}


@pytest.fixture
def client(dispatcher):
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_providers(client):
    assert client.get("/providers").json() == {"providers": ["aws", "hetzner"]}


# ---------------------------------------------------------------------------
# POST /vm/create
# ---------------------------------------------------------------------------

def test_create_returns_201_with_camel_case_body(client, fake_aws):
    resp = client.post("/vm/create", json=CREATE_BODY)
    assert resp.status_code == 201, resp.text

    body = resp.json()
    assert body["id"] == "aws-1"
    assert body["instanceType"] == "small"
    assert body["status"] == "pending"
    assert body["sshUsername"] == "root"
    assert body["sshPassword"] == "Abcdefgh12345678"
    assert body["publicIp"] is None
    assert "createdAt" in body

    request = fake_aws.calls[0][1]
    assert request.use_spot_instance is True
    assert request.user_id == "user_123"


def test_create_unknown_provider_is_400(client, fake_aws, fake_hetzner):
    resp = client.post("/vm/create", json={**CREATE_BODY, "provider": "gcp"})
    assert resp.status_code == 400
    assert "unsupported provider: gcp" in resp.json()["detail"]
    assert fake_aws.calls == [] and fake_hetzner.calls == []


def test_create_unsupported_type_is_400(client, fake_aws):
    resp = client.post("/vm/create", json={**CREATE_BODY, "instanceType": "huge"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "instance type huge not supported by provider aws"
    assert fake_aws.calls == []


@pytest.mark.parametrize("missing", ["name", "provider", "instanceType", "region", "userId"])
def test_create_missing_field_is_400(client, missing):
    body = {k: v for k, v in CREATE_BODY.items() if k != missing}
    resp = client.post("/vm/create", json=body)
    assert resp.status_code == 400
    assert missing in resp.json()["detail"]


def test_create_resolution_failure_is_502(client, fake_aws):
    fake_aws.error = ResourceResolutionError("image", ["ubuntu-*"], provider="aws")
    resp = client.post("/vm/create", json=CREATE_BODY)
    assert resp.status_code == 502
    assert "could not resolve image" in resp.json()["detail"]


def test_create_without_credentials_is_503(client, fake_hetzner):
    fake_hetzner.error = ConfigurationError("HETZNER_TOKEN environment variable is not set.")
    resp = client.post("/vm/create", json={**CREATE_BODY, "provider": "hetzner"})
    assert resp.status_code == 503


# ---------------------------------------------------------------------------
# DELETE /vm/{id}
# ---------------------------------------------------------------------------

def test_delete(client, fake_hetzner):
    resp = client.delete("/vm/4711", params={"provider": "hetzner"})
    assert resp.status_code == 200
    assert resp.json() == {"message": "VM deleted successfully"}
    assert fake_hetzner.calls == [("delete", "4711")]


def test_delete_requires_provider(client):
    resp = client.delete("/vm/4711")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "provider query parameter is required"


def test_delete_unknown_provider_is_400(client, fake_aws, fake_hetzner):
    resp = client.delete("/vm/4711", params={"provider": "gcp"})
    assert resp.status_code == 400
    assert "unsupported provider: gcp" in resp.json()["detail"]
    assert fake_aws.calls == [] and fake_hetzner.calls == []


def test_delete_unknown_id_is_404(client, fake_aws):
    fake_aws.error = NotFoundError("instance 'i-x' not found", provider="aws")
    resp = client.delete("/vm/i-x", params={"provider": "aws"})
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# GET /vm/{id}/status
# ---------------------------------------------------------------------------

def test_status(client, fake_aws):
    resp = client.get("/vm/i-1/status", params={"provider": "aws"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == "i-1"
    assert body["status"] == "running"
    assert body["publicIp"] == "203.0.113.7"
    assert "updatedAt" in body


def test_status_vendor_rejection_is_502(client, fake_aws):
    fake_aws.error = VendorRejection("describe_instances failed: AuthFailure", provider="aws")
    resp = client.get("/vm/i-1/status", params={"provider": "aws"})
    assert resp.status_code == 502
    assert "AuthFailure" in resp.json()["detail"]


def test_status_unknown_provider_is_400(client):
    resp = client.get("/vm/i-1/status", params={"provider": "gcp"})
    assert resp.status_code == 400


def test_status_hetzner_unreachable_is_502():
    hcloud = MagicMock()
    hcloud.servers.get_by_id.side_effect = requests.exceptions.ConnectionError("connection refused")
    dispatcher = Dispatcher({ProviderName.HETZNER: HetznerProvider(client=hcloud)})
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    try:
        resp = TestClient(app, raise_server_exceptions=False).get(
            "/vm/4711/status", params={"provider": "hetzner"}
        )
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 502
    assert "connection refused" in resp.json()["detail"]

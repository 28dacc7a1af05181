from __future__ import annotations

from datetime import datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from identity_service.api import routes
from identity_service.config import Settings
from identity_service.domain.contracts import AccountStoreError
from identity_service.main import install_services
from identity_service.memory_store import InMemoryAccountStore

SIGN_UP_BODY = {
    "name": "Kevin",
    "email": "kevin@example.com",
    "password": "Abcdef12",
    "phones": [{"number": 1234567, "city_code": 1, "country_code": "57"}],
}


def _settings(**overrides) -> Settings:
    values = dict(
        jwt_secret="api-test-secret",
        jwt_issuer="identity-service-tests",
        jwt_ttl_seconds=600,
        bcrypt_rounds=4,
        store_backend="memory",
    )
    values.update(overrides)
    return Settings(**values)


def _build_client(settings: Settings, store) -> TestClient:
    app = FastAPI()
    app.include_router(routes.router)
    install_services(app, settings, store)
    return TestClient(app)


@pytest.fixture
def api_client():
    """Provide a FastAPI test client backed by an isolated in-memory store."""
    store = InMemoryAccountStore()
    with _build_client(_settings(), store) as client:
        yield client, store


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_sign_up_returns_created_account(api_client):
    client, store = api_client

    response = client.post("/v1/sign-up", json=SIGN_UP_BODY)

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "kevin@example.com"
    assert data["name"] == "Kevin"
    assert data["is_active"] is True
    assert data["token"]
    assert 0 < data["token_expires_in"] <= 600
    assert data["password"] and data["password"] != "Abcdef12"
    assert data["created"] == data["last_login"]
    assert data["phones"] == SIGN_UP_BODY["phones"]
    assert len(store) == 1


def test_sign_up_conflict(api_client):
    client, _ = api_client
    assert client.post("/v1/sign-up", json=SIGN_UP_BODY).status_code == 201

    response = client.post("/v1/sign-up", json=SIGN_UP_BODY)

    assert response.status_code == 409
    assert response.json() == {"detail": "User already exists"}


@pytest.mark.parametrize(
    "body,detail",
    [
        ({"email": "kevin", "password": "Abcdef12"}, "Invalid email format"),
        ({"password": "Abcdef12"}, "Invalid email format"),
        ({"email": "kevin@example.com", "password": "weak"}, "Invalid password format"),
        ({"email": "kevin@example.com"}, "Invalid password format"),
    ],
)
def test_sign_up_rejects_bad_format(api_client, body, detail):
    client, store = api_client

    response = client.post("/v1/sign-up", json=body)

    assert response.status_code == 400
    assert response.json()["detail"] == detail
    assert len(store) == 0


def test_login_rotates_token(api_client):
    client, _ = api_client
    created = client.post("/v1/sign-up", json=SIGN_UP_BODY).json()

    response = client.post("/v1/login", headers=_bearer(created["token"]))

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == created["id"]
    assert data["token"] != created["token"]
    assert _parse(data["last_login"]) >= _parse(created["last_login"])

    replay = client.post("/v1/login", headers=_bearer(created["token"]))
    assert replay.status_code == 404

    follow_up = client.post("/v1/login", headers=_bearer(data["token"]))
    assert follow_up.status_code == 200


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer not.a.valid.token"},
        {"Authorization": "Bearer "},
        {"Authorization": "Basic a2V2aW46c2VjcmV0"},
    ],
)
def test_login_rejects_invalid_tokens(api_client, headers):
    client, _ = api_client

    response = client.post("/v1/login", headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"


def test_login_rejects_inactive_account(api_client):
    client, store = api_client
    created = client.post("/v1/sign-up", json=SIGN_UP_BODY).json()
    account = store.find_by_email("kevin@example.com")
    account.is_active = False
    store.save(account)

    response = client.post("/v1/login", headers=_bearer(created["token"]))

    assert response.status_code == 409
    assert response.json()["detail"] == "Cannot login inactive user"
    assert store.find_by_email("kevin@example.com").token == created["token"]


def test_password_hash_can_be_hidden():
    store = InMemoryAccountStore()
    with _build_client(_settings(expose_password_hash=False), store) as client:
        response = client.post("/v1/sign-up", json=SIGN_UP_BODY)

    assert response.status_code == 201
    assert response.json()["password"] is None


class BrokenStore(InMemoryAccountStore):
    def find_by_email(self, email):
        raise AccountStoreError("could not connect to server at 10.1.2.3")


def test_store_outage_is_reported_without_details():
    with _build_client(_settings(), BrokenStore()) as client:
        response = client.post("/v1/sign-up", json=SIGN_UP_BODY)

    assert response.status_code == 503
    assert "10.1.2.3" not in response.text

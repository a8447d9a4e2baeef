"""End-to-end tests for registration and login."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from gamehub.api import create_app
from gamehub.database import Database
from gamehub.security import IdentityTokens


@pytest.fixture()
def client(database: Database, tokens: IdentityTokens) -> TestClient:
    return TestClient(create_app(database=database, tokens=tokens))


def _register(client: TestClient, username="alice", email="a@x.com", password="pw123"):
    return client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )


def test_register_then_login(client: TestClient, tokens: IdentityTokens) -> None:
    registered = _register(client)
    assert registered.status_code == 201, registered.text
    payload = registered.json()
    assert payload["message"] == "User registered successfully."
    assert payload["user"]["username"] == "alice"
    assert payload["user"]["email"] == "a@x.com"
    assert tokens.verify(payload["token"]) == payload["user"]["id"]

    login = client.post("/api/auth/login", json={"email": "a@x.com", "password": "pw123"})
    assert login.status_code == 200, login.text
    assert login.json()["message"] == "Login successful."
    assert tokens.verify(login.json()["token"]) == payload["user"]["id"]


def test_register_requires_all_fields(client: TestClient) -> None:
    response = client.post("/api/auth/register", json={"username": "alice", "email": "a@x.com"})

    assert response.status_code == 400
    assert response.json() == {"error": "All fields are required."}


def test_register_rejects_duplicates(client: TestClient, mongo_client) -> None:
    assert _register(client).status_code == 201

    same_email = _register(client, username="other")
    assert same_email.status_code == 400
    assert same_email.json() == {"error": "Email already registered."}

    same_username = _register(client, email="b@x.com")
    assert same_username.status_code == 400
    assert same_username.json() == {"error": "Username already taken."}

    assert mongo_client["gamehub-tests"]["users"].count_documents({}) == 1


def test_login_failures_share_one_message(client: TestClient) -> None:
    _register(client)

    wrong_password = client.post("/api/auth/login", json={"email": "a@x.com", "password": "wrong"})
    unknown_email = client.post("/api/auth/login", json={"email": "b@x.com", "password": "pw123"})

    assert wrong_password.status_code == 400
    assert unknown_email.status_code == 400
    assert wrong_password.json() == {"error": "Invalid credentials."}
    assert unknown_email.json() == wrong_password.json()


def test_login_requires_email_and_password(client: TestClient) -> None:
    response = client.post("/api/auth/login", json={"email": "a@x.com"})

    assert response.status_code == 400
    assert response.json() == {"error": "Email and password are required."}


def test_current_user_requires_valid_bearer_token(client: TestClient) -> None:
    token = _register(client).json()["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user"]["username"] == "alice"

    assert client.get("/api/auth/me").status_code == 401
    bogus = client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"})
    assert bogus.status_code == 401
    assert bogus.json() == {"error": "Invalid or expired token."}


def test_malformed_body_is_a_client_error(client: TestClient) -> None:
    response = client.post(
        "/api/auth/login",
        content="not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert "error" in response.json()

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from gamehub.api import create_app
from gamehub.database import Database
from gamehub.security import IdentityTokens


@pytest.fixture()
def client(database: Database, tokens: IdentityTokens) -> TestClient:
    return TestClient(create_app(database=database, tokens=tokens))


def test_create_and_search_catalog(client: TestClient) -> None:
    created = client.post("/api/games", json={"title": "Chess"})
    assert created.status_code == 201, created.text
    chess = created.json()
    assert chess["title"] == "Chess"
    assert chess["id"]

    other = client.post(
        "/api/games",
        json={
            "title": "Go",
            "description": "Stones on a grid",
            "genre": "Strategy",
            "image": "https://img.test/go.png",
            "downloadLink": "https://dl.test/go",
        },
    )
    assert other.status_code == 201
    assert other.json()["downloadLink"] == "https://dl.test/go"

    found = client.get("/api/games", params={"search": "che"})
    assert found.status_code == 200
    assert found.json() == [chess]

    everything = client.get("/api/games")
    assert {entry["title"] for entry in everything.json()} == {"Chess", "Go"}


def test_create_requires_title(client: TestClient) -> None:
    response = client.post("/api/games", json={"genre": "Puzzle"})

    assert response.status_code == 400
    assert response.json() == {"error": "Title is required."}


def test_storage_failure_returns_generic_error(database: Database, tokens: IdentityTokens, monkeypatch) -> None:
    def _unavailable(term=None):
        raise ServerSelectionTimeoutError("no servers")

    monkeypatch.setattr(database.games, "search", _unavailable)
    client = TestClient(create_app(database=database, tokens=tokens))

    response = client.get("/api/games")
    assert response.status_code == 500
    assert response.json() == {"error": "Unexpected error occurred."}

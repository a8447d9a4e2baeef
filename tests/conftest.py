from __future__ import annotations

import sys
from pathlib import Path

import mongomock
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gamehub.database import Database
from gamehub.security import IdentityTokens
from gamehub.sessions import SessionManager


@pytest.fixture()
def mongo_client() -> mongomock.MongoClient:
    return mongomock.MongoClient()


@pytest.fixture()
def database(mongo_client: mongomock.MongoClient) -> Database:
    db = Database(mongo_client, "gamehub-tests")
    db.initialize()
    return db


@pytest.fixture()
def tokens() -> IdentityTokens:
    return IdentityTokens("tests-secret-key")


@pytest.fixture()
def sessions() -> SessionManager:
    return SessionManager()

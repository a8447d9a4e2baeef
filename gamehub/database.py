"""MongoDB-backed persistence for accounts, catalog entries and chat messages."""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from bson.errors import InvalidId
from passlib.context import CryptContext
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError

from .config import Settings
from .models import Account, CatalogEntry, ChatMessage

logger = logging.getLogger("gamehub.database")

# New hashes use PBKDF2; bcrypt hashes written by earlier deployments still verify.
_pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def _verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


def _normalise_email(email: str) -> str:
    return email.strip().lower()


def _parse_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class DuplicateAccountError(ValueError):
    """Raised when a username or email is already registered."""

    def __init__(self, field: str) -> None:
        self.field = field
        if field == "email":
            message = "Email already registered."
        else:
            message = "Username already taken."
        super().__init__(message)


class AccountStore:
    """Credential storage. Passwords are hashed before they reach the collection."""

    def __init__(self, collection) -> None:
        self._collection = collection

    def initialize(self) -> None:
        self._collection.create_index([("username", ASCENDING)], unique=True)
        self._collection.create_index([("email", ASCENDING)], unique=True)

    def create(self, username: str, email: str, password: str) -> Account:
        """Create an account, raising :class:`DuplicateAccountError` on conflicts."""

        username = username.strip()
        email = _normalise_email(email)
        if not username or not email or not password:
            raise ValueError("All fields are required.")

        if self._collection.find_one({"email": email}) is not None:
            raise DuplicateAccountError("email")
        if self._collection.find_one({"username": username}) is not None:
            raise DuplicateAccountError("username")

        created_at = _current_timestamp()
        document = {
            "username": username,
            "email": email,
            "password": _hash_password(password),
            "created_at": created_at,
        }
        try:
            result = self._collection.insert_one(document)
        except DuplicateKeyError as exc:
            # Lost a race with a concurrent registration.
            field = "email" if "email" in str(exc) else "username"
            raise DuplicateAccountError(field) from exc

        return Account(id=str(result.inserted_id), username=username, email=email, created_at=created_at)

    def get(self, account_id: str) -> Optional[Account]:
        object_id = _parse_object_id(account_id)
        if object_id is None:
            return None
        document = self._collection.find_one({"_id": object_id})
        if document is None:
            return None
        return self._document_to_account(document)

    def get_by_email(self, email: str) -> Optional[Account]:
        document = self._collection.find_one({"email": _normalise_email(email)})
        if document is None:
            return None
        return self._document_to_account(document)

    def get_by_username(self, username: str) -> Optional[Account]:
        document = self._collection.find_one({"username": username.strip()})
        if document is None:
            return None
        return self._document_to_account(document)

    def authenticate(self, email: str, password: str) -> Optional[Account]:
        document = self._collection.find_one({"email": _normalise_email(email)})
        if document is None:
            return None
        stored_hash = document.get("password")
        if not stored_hash or not _verify_password(password, stored_hash):
            return None
        return self._document_to_account(document)

    def _document_to_account(self, document: Mapping[str, Any]) -> Account:
        return Account(
            id=str(document["_id"]),
            username=str(document["username"]),
            email=str(document["email"]),
            created_at=document.get("created_at"),
        )


class CatalogStore:
    """Game catalog with case-insensitive title search."""

    FIELDS = ("title", "description", "genre", "image", "download_link")

    def __init__(self, collection) -> None:
        self._collection = collection

    def initialize(self) -> None:
        self._collection.create_index([("title", ASCENDING)])

    def search(self, term: Optional[str] = None) -> List[CatalogEntry]:
        """Return entries whose title contains ``term``; every entry when it is empty."""

        query: Dict[str, Any] = {}
        if term:
            query["title"] = {"$regex": re.escape(term), "$options": "i"}
        return [self._document_to_entry(doc) for doc in self._collection.find(query)]

    def create(
        self,
        title: str,
        *,
        description: Optional[str] = None,
        genre: Optional[str] = None,
        image: Optional[str] = None,
        download_link: Optional[str] = None,
    ) -> CatalogEntry:
        title = (title or "").strip()
        if not title:
            raise ValueError("Title is required.")

        document = {
            "title": title,
            "description": description,
            "genre": genre,
            "image": image,
            "download_link": download_link,
        }
        result = self._collection.insert_one(document)
        return CatalogEntry(
            id=str(result.inserted_id),
            title=title,
            description=description,
            genre=genre,
            image=image,
            download_link=download_link,
        )

    def _document_to_entry(self, document: Mapping[str, Any]) -> CatalogEntry:
        return CatalogEntry(
            id=str(document["_id"]),
            title=str(document["title"]),
            description=document.get("description"),
            genre=document.get("genre"),
            image=document.get("image"),
            download_link=document.get("download_link", document.get("downloadLink")),
        )


class MessageStore:
    """Append-only chat history."""

    def __init__(self, collection) -> None:
        self._collection = collection

    def initialize(self) -> None:
        self._collection.create_index([("timestamp", DESCENDING)])

    def append(self, username: str, message: str, created_at: datetime) -> ChatMessage:
        result = self._collection.insert_one(
            {"username": username, "message": message, "timestamp": created_at}
        )
        return ChatMessage(
            id=str(result.inserted_id),
            username=username,
            message=message,
            created_at=created_at,
        )

    def recent(self, limit: int = 50) -> List[ChatMessage]:
        """Return up to ``limit`` messages, newest first."""

        if limit <= 0:
            return []
        cursor = self._collection.find().sort("timestamp", DESCENDING).limit(limit)
        return [
            ChatMessage(
                id=str(doc["_id"]),
                username=str(doc["username"]),
                message=str(doc["message"]),
                created_at=doc["timestamp"],
            )
            for doc in cursor
        ]


class Database:
    """Owns the MongoDB client shared by the HTTP gateway and the realtime server."""

    def __init__(self, client: MongoClient, name: str = "gamehub") -> None:
        self._client = client
        self._db = client[name]
        self.accounts = AccountStore(self._db["users"])
        self.games = CatalogStore(self._db["games"])
        self.messages = MessageStore(self._db["messages"])

    @property
    def name(self) -> str:
        return self._db.name

    def initialize(self) -> None:
        """Create the indexes the stores rely on."""

        self.accounts.initialize()
        self.games.initialize()
        self.messages.initialize()
        logger.info("Indexes ensured on database %s", self.name)

    def close(self) -> None:
        self._client.close()


def connect_database(settings: Settings) -> Database:
    """Create a :class:`Database` from the configured connection string."""

    client: MongoClient = MongoClient(settings.mongo_uri, tz_aware=True)
    return Database(client, settings.mongo_database)


__all__ = [
    "AccountStore",
    "CatalogStore",
    "Database",
    "DuplicateAccountError",
    "MessageStore",
    "connect_database",
]

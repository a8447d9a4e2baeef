"""Domain models for accounts, catalog entries and chat messages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional


@dataclass(frozen=True)
class Account:
    """Represents a registered user. The password hash never leaves the store."""

    id: str
    username: str
    email: str
    created_at: Optional[datetime] = None

    def summary(self) -> Dict[str, str]:
        return {"id": self.id, "username": self.username, "email": self.email}


@dataclass(frozen=True)
class CatalogEntry:
    """A game listed in the catalog."""

    id: str
    title: str
    description: Optional[str] = None
    genre: Optional[str] = None
    image: Optional[str] = None
    download_link: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "genre": self.genre,
            "image": self.image,
            "downloadLink": self.download_link,
        }


@dataclass(frozen=True)
class ChatMessage:
    """A persisted chat message; ``created_at`` is always the server clock."""

    username: str
    message: str
    created_at: datetime
    id: Optional[str] = None


__all__ = ["Account", "CatalogEntry", "ChatMessage"]

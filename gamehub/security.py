"""Identity tokens issued at login and registration."""
from __future__ import annotations

import base64
import hashlib
import json
import logging
import secrets
import time
from datetime import timedelta
from typing import Callable, Optional

from cryptography.fernet import Fernet, InvalidToken
from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger("gamehub.security")

TOKEN_TTL = timedelta(hours=1)


class IdentityTokens:
    """Issue and verify signed, time-limited credentials bound to an account id.

    Tokens are Fernet tokens, so they are authenticated and carry their own
    issue time; verification rejects anything older than :data:`TOKEN_TTL`.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl: timedelta = TOKEN_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._cipher = Fernet(base64.urlsafe_b64encode(digest))
        self._ttl = ttl
        self._clock = clock

    @classmethod
    def from_secret(cls, secret: Optional[str], **kwargs) -> "IdentityTokens":
        if not secret:
            logger.warning(
                "No token secret configured; generated an ephemeral one. "
                "Issued tokens will not survive a restart."
            )
            secret = secrets.token_urlsafe(32)
        return cls(secret, **kwargs)

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, account_id: str) -> str:
        payload = json.dumps({"id": account_id}).encode("utf-8")
        return self._cipher.encrypt_at_time(payload, int(self._clock())).decode("ascii")

    def verify(self, token: str) -> Optional[str]:
        """Return the account id bound to ``token`` or ``None`` when invalid or expired."""

        if not token:
            return None
        try:
            payload = self._cipher.decrypt_at_time(
                token.encode("ascii"),
                ttl=int(self._ttl.total_seconds()),
                current_time=int(self._clock()),
            )
        except (InvalidToken, UnicodeEncodeError):
            return None
        try:
            account_id = json.loads(payload).get("id")
        except (ValueError, AttributeError):
            return None
        return str(account_id) if account_id else None


class BearerIdentity:
    """FastAPI dependency resolving ``Authorization: Bearer`` identity tokens."""

    def __init__(self, tokens: IdentityTokens) -> None:
        self._tokens = tokens
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> str:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token.")

        account_id = self._tokens.verify(credentials.credentials)
        if account_id is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token.")
        return account_id


__all__ = ["BearerIdentity", "IdentityTokens", "TOKEN_TTL"]

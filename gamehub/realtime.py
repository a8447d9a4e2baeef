"""Realtime chat: connection registry, broadcast core and the Socket.IO binding."""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http.cookies import CookieError, SimpleCookie
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

import anyio
import socketio
from pymongo.errors import PyMongoError

from .database import AccountStore, MessageStore
from .security import IdentityTokens
from .sessions import SESSION_COOKIE_NAME, SessionManager

logger = logging.getLogger("gamehub.realtime")

SEND_EVENT = "sendMessage"
RECEIVE_EVENT = "receiveMessage"
DISPLAY_TIME_FORMAT = "%I:%M %p"

Emitter = Callable[[str, Dict[str, Any], str], Awaitable[None]]


@dataclass(frozen=True)
class IdentityClaim:
    """A verified identity attached to a realtime connection."""

    user_id: str
    username: str
    source: str


@dataclass
class Connection:
    sid: str
    identity: Optional[IdentityClaim] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Held from validation to broadcast so one client's events stay in order.
    lock: anyio.Lock = field(default_factory=anyio.Lock, repr=False, compare=False)


class ConnectionRegistry:
    """The set of currently open connections, keyed by connection id.

    Mutated only from the event loop thread, so no guard is taken.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}

    def add(self, connection: Connection) -> None:
        self._connections[connection.sid] = connection

    def remove(self, sid: str) -> Optional[Connection]:
        return self._connections.pop(sid, None)

    def get(self, sid: str) -> Optional[Connection]:
        return self._connections.get(sid)

    def snapshot(self) -> List[Connection]:
        return list(self._connections.values())

    def __contains__(self, sid: object) -> bool:
        return sid in self._connections

    def __len__(self) -> int:
        return len(self._connections)


def _required_text(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def format_display_time(client_value: Any, created_at: datetime) -> str:
    """Prefer the sender's display string, otherwise render the server instant."""

    if isinstance(client_value, str) and client_value.strip():
        return client_value
    return created_at.astimezone().strftime(DISPLAY_TIME_FORMAT)


class BroadcastCore:
    """Persist inbound chat messages and fan them out to every open connection."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        messages: MessageStore,
        emit: Emitter,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry
        self._messages = messages
        self._emit = emit
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    async def connect(self, sid: str, identity: Optional[IdentityClaim] = None) -> Connection:
        connection = Connection(sid=sid, identity=identity)
        self._registry.add(connection)
        logger.info(
            "Client %s connected%s (%d active)",
            sid,
            f" as {identity.username}" if identity else "",
            len(self._registry),
        )
        return connection

    async def disconnect(self, sid: str) -> None:
        self._registry.remove(sid)
        logger.info("Client %s disconnected (%d active)", sid, len(self._registry))

    async def receive(self, sid: str, payload: Any) -> Dict[str, Any]:
        """Handle one inbound chat event and return the acknowledgement for the sender."""

        connection = self._registry.get(sid)
        if connection is None:
            logger.warning("Dropping chat event from unknown connection %s", sid)
            return {"ok": False, "error": "Not connected."}

        async with connection.lock:
            return await self._process(sid, payload)

    async def _process(self, sid: str, payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, Mapping):
            logger.warning("Dropping malformed chat event from %s: %r", sid, payload)
            return {"ok": False, "error": "Message payload must be an object."}

        username = _required_text(payload, "username")
        body = _required_text(payload, "message")
        if username is None or body is None:
            logger.warning("Message missing username or message from %s: %r", sid, dict(payload))
            return {"ok": False, "error": "Username and message are required."}

        created_at = self._clock()
        try:
            await anyio.to_thread.run_sync(
                functools.partial(self._messages.append, username, body, created_at)
            )
        except Exception:
            logger.exception("Error saving message from %s; not broadcasting", sid)
            return {"ok": False, "error": "Message could not be saved."}

        envelope = {
            "username": username,
            "message": body,
            "timestamp": format_display_time(payload.get("timestamp"), created_at),
        }
        delivered = await self.broadcast(envelope)
        logger.debug("Broadcast message from %s to %d client(s)", sid, delivered)
        return {"ok": True}

    async def broadcast(self, envelope: Dict[str, Any]) -> int:
        """Deliver ``envelope`` to every registered connection, the sender included."""

        delivered = 0
        for connection in self._registry.snapshot():
            try:
                await self._emit(RECEIVE_EVENT, envelope, connection.sid)
            except Exception as exc:
                logger.warning("Failed to deliver message to %s: %s", connection.sid, exc)
                continue
            delivered += 1
        return delivered


def _cookie_value(environ: Mapping[str, Any], name: str) -> Optional[str]:
    raw = environ.get("HTTP_COOKIE")
    if not raw:
        return None
    cookie = SimpleCookie()
    try:
        cookie.load(raw)
    except CookieError:
        return None
    morsel = cookie.get(name)
    return morsel.value if morsel is not None else None


class IdentityResolver:
    """Resolve an optional identity claim during the realtime handshake.

    An identity token passed as ``auth={"token": ...}`` wins; otherwise the
    HTTP session cookie sent with the handshake is consulted.
    """

    def __init__(
        self,
        *,
        sessions: SessionManager,
        tokens: IdentityTokens,
        accounts: AccountStore,
    ) -> None:
        self._sessions = sessions
        self._tokens = tokens
        self._accounts = accounts

    async def resolve(self, environ: Mapping[str, Any], auth: Any = None) -> Optional[IdentityClaim]:
        token = auth.get("token") if isinstance(auth, Mapping) else None
        if isinstance(token, str) and token:
            account_id = self._tokens.verify(token)
            if account_id is not None:
                try:
                    account = await anyio.to_thread.run_sync(self._accounts.get, account_id)
                except PyMongoError:
                    logger.exception("Account lookup failed during handshake; continuing without token identity")
                    account = None
                if account is not None:
                    return IdentityClaim(user_id=account.id, username=account.username, source="token")

        session = self._sessions.resolve(_cookie_value(environ, SESSION_COOKIE_NAME))
        if session is not None:
            return IdentityClaim(user_id=session.user_id, username=session.username, source="session")
        return None


def create_socket_server(
    *,
    messages: MessageStore,
    resolver: IdentityResolver,
    cors_origins: Sequence[str],
    registry: Optional[ConnectionRegistry] = None,
) -> tuple[socketio.AsyncServer, BroadcastCore]:
    """Build the Socket.IO server and the broadcast core it drives."""

    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=list(cors_origins),
        logger=False,
        engineio_logger=False,
    )

    async def emit(event: str, data: Dict[str, Any], sid: str) -> None:
        await sio.emit(event, data, to=sid)

    core = BroadcastCore(registry or ConnectionRegistry(), messages, emit)

    @sio.event
    async def connect(sid, environ, auth=None):
        identity = await resolver.resolve(environ, auth)
        await core.connect(sid, identity)

    @sio.event
    async def disconnect(sid, reason=None):
        await core.disconnect(sid)

    @sio.on(SEND_EVENT)
    async def send_message(sid, data=None):
        return await core.receive(sid, data)

    return sio, core


__all__ = [
    "BroadcastCore",
    "Connection",
    "ConnectionRegistry",
    "IdentityClaim",
    "IdentityResolver",
    "RECEIVE_EVENT",
    "SEND_EVENT",
    "create_socket_server",
    "format_display_time",
]

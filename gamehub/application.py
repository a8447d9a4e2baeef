"""Application factory that serves both the HTTP gateway and realtime chat."""
from __future__ import annotations

import logging
from typing import Optional

import socketio

from .api import create_app as create_api_app
from .config import Settings, load_settings
from .database import Database, connect_database
from .realtime import IdentityResolver, create_socket_server
from .security import IdentityTokens
from .sessions import SessionManager

logger = logging.getLogger("gamehub.application")


def create_application(
    settings: Optional[Settings] = None,
    *,
    database: Optional[Database] = None,
) -> socketio.ASGIApp:
    """Create the combined ASGI application.

    Both halves share one :class:`Database`, and therefore one MongoDB
    connection pool, plus the session manager used for the socket handshake.
    """

    if settings is None:
        settings = load_settings()
    if database is None:
        database = connect_database(settings)
        database.initialize()

    tokens = IdentityTokens.from_secret(settings.token_secret)
    sessions = SessionManager()

    api_app = create_api_app(
        database=database,
        tokens=tokens,
        sessions=sessions,
        cookie_policy=settings.cookie_policy,
        cors_origins=settings.cors_origins,
    )

    resolver = IdentityResolver(sessions=sessions, tokens=tokens, accounts=database.accounts)
    sio, core = create_socket_server(
        messages=database.messages,
        resolver=resolver,
        cors_origins=settings.cors_origins,
    )
    api_app.state.broadcast = core

    logger.info(
        "Application assembled (environment=%s, database=%s)",
        settings.environment,
        database.name,
    )
    return socketio.ASGIApp(sio, other_asgi_app=api_app)


__all__ = ["create_application"]

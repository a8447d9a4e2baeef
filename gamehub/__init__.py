"""Backend for the game catalog: accounts, catalog search and realtime chat."""

from __future__ import annotations

from typing import Any

from .config import ConfigurationError, Settings, load_settings


def create_application(*args: Any, **kwargs: Any):
    """Factory function that returns the combined HTTP + realtime application."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


def create_app(*args: Any, **kwargs: Any):
    """Factory function for the HTTP gateway alone."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "ConfigurationError",
    "Settings",
    "load_settings",
    "create_application",
    "create_app",
]

"""Configuration management for the game catalog service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import yaml

ENVIRONMENTS = ("development", "production")
DEFAULT_CORS_ORIGINS = ("http://localhost:3000",)


class ConfigurationError(RuntimeError):
    """Raised when the service cannot start with the supplied configuration."""


@dataclass(frozen=True)
class CookiePolicy:
    """Attributes applied to the session cookie."""

    same_site: str
    secure: bool


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP gateway and realtime server."""

    mongo_uri: str
    mongo_database: str = "gamehub"
    token_secret: Optional[str] = None
    environment: str = "development"
    cors_origins: Sequence[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cookie_policy(self) -> CookiePolicy:
        if self.is_production:
            return CookiePolicy(same_site="none", secure=True)
        return CookiePolicy(same_site="lax", secure=False)

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "Settings":
        """Create :class:`Settings` from merged YAML and environment values."""

        mongo_uri = str(data.get("mongo_uri") or "").strip()
        if not mongo_uri:
            raise ConfigurationError("MONGO_URI is missing; refusing to start without a document store")

        environment = str(data.get("environment") or "development").strip().lower()
        if environment not in ENVIRONMENTS:
            raise ConfigurationError(
                f"Unknown environment '{environment}'; expected one of: {', '.join(ENVIRONMENTS)}"
            )

        token_secret = _optional_text(data.get("token_secret"))
        if token_secret is None and environment == "production":
            raise ConfigurationError("GAMEHUB_TOKEN_SECRET must be configured in production")

        try:
            port = int(data.get("port") or 5000)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid port: {data.get('port')!r}") from exc

        return Settings(
            mongo_uri=mongo_uri,
            mongo_database=str(data.get("mongo_database") or "gamehub").strip(),
            token_secret=token_secret,
            environment=environment,
            cors_origins=_parse_origins(data.get("cors_origins")),
            host=str(data.get("host") or "0.0.0.0"),
            port=port,
            log_level=str(data.get("log_level") or "INFO").upper(),
        )


_ENV_KEYS: Dict[str, str] = {
    "MONGO_URI": "mongo_uri",
    "MONGO_DATABASE": "mongo_database",
    "GAMEHUB_TOKEN_SECRET": "token_secret",
    "GAMEHUB_ENV": "environment",
    "GAMEHUB_CORS_ORIGINS": "cors_origins",
    "GAMEHUB_HOST": "host",
    "PORT": "port",
    "GAMEHUB_LOG_LEVEL": "log_level",
}


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_origins(value: object) -> List[str]:
    if value is None:
        return list(DEFAULT_CORS_ORIGINS)
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ConfigurationError("cors_origins must be a list or a comma separated string")
    origins = [item.strip() for item in items if item.strip()]
    return origins or list(DEFAULT_CORS_ORIGINS)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "gamehub.yaml").resolve(strict=False)


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from YAML (when present) overridden by environment variables."""
    env = os.environ if environ is None else environ
    if config_path is None:
        config_path = resolve_config_path(env.get("GAMEHUB_CONFIG"))

    merged: Dict[str, object] = {}
    if config_path.is_file():
        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
        merged.update(raw)

    for env_key, setting_key in _ENV_KEYS.items():
        value = env.get(env_key)
        if value is not None and value.strip():
            merged[setting_key] = value

    return Settings.from_dict(merged)


__all__ = [
    "ConfigurationError",
    "CookiePolicy",
    "Settings",
    "load_settings",
    "resolve_config_path",
]

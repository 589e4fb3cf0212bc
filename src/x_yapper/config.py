"""Credentials from the environment / ``.env``, and the token file store."""

from __future__ import annotations

import json
import logging
import os
import pathlib
from collections.abc import Mapping
from dataclasses import dataclass

import dotenv

from x_yapper.auth import Token
from x_yapper.client import OAuth1Credentials

logger = logging.getLogger(__name__)

_DEFAULT_ENV_PATH = pathlib.Path.cwd() / ".env"
_OAUTH1_KEYS = (
    "TWITTER_CONSUMER_KEY",
    "TWITTER_CONSUMER_SECRET",
    "TWITTER_ACCESS_TOKEN",
    "TWITTER_ACCESS_TOKEN_SECRET",
)


class ConfigError(ValueError):
    """Required credentials are missing."""


@dataclass(frozen=True)
class Settings:
    client_id: str = ""
    client_secret: str = ""
    oauth1: OAuth1Credentials | None = None
    editor: str | None = None

    @property
    def has_oauth2(self) -> bool:
        return bool(self.client_id and self.client_secret)


def load_env_file(path: pathlib.Path | None = None) -> bool:
    """Load ``.env`` into ``os.environ`` without overriding existing values."""
    env_path = path or _DEFAULT_ENV_PATH
    loaded = dotenv.load_dotenv(env_path)
    if loaded:
        logger.debug("Loaded environment from %s", env_path)
    return loaded


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Read credentials from *env* (default ``os.environ``).

    Raises :class:`ConfigError` unless either ``TWITTER_CLIENT_ID`` and
    ``TWITTER_CLIENT_SECRET`` or the full OAuth 1.0a set are present.
    """
    env = os.environ if env is None else env

    oauth1_values = [env.get(key, "").strip() for key in _OAUTH1_KEYS]
    oauth1 = OAuth1Credentials(*oauth1_values) if all(oauth1_values) else None

    settings = Settings(
        client_id=env.get("TWITTER_CLIENT_ID", "").strip(),
        client_secret=env.get("TWITTER_CLIENT_SECRET", "").strip(),
        oauth1=oauth1,
        editor=env.get("EDITOR") or None,
    )
    if not settings.has_oauth2 and settings.oauth1 is None:
        raise ConfigError(
            "TWITTER_CLIENT_ID and TWITTER_CLIENT_SECRET must be set "
            "(in the environment or .env)",
        )
    return settings


def require_oauth2(settings: Settings) -> None:
    if not settings.has_oauth2:
        raise ConfigError("TWITTER_CLIENT_ID and TWITTER_CLIENT_SECRET must be set")


class TokenStore:
    """Token pair persisted as JSON (default ``./tokens.json``).

    Creates the parent directory on first write and sets ``0o600``
    permissions after each write to protect secrets.
    """

    def __init__(self, path: pathlib.Path = pathlib.Path("tokens.json")) -> None:
        self._path = path

    @property
    def path(self) -> pathlib.Path:
        return self._path

    def save(self, token: Token) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(token.to_dict(), indent=2) + "\n", encoding="utf-8",
        )
        os.chmod(self._path, 0o600)

    def load(self) -> Token | None:
        if not self._path.exists():
            return None
        return Token.from_dict(json.loads(self._path.read_text(encoding="utf-8")))

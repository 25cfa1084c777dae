"""Client configuration.

The module-level constants are the defaults used when nothing else is
configured.  :func:`load_settings` layers an optional ``settings.json`` in
the user config directory and a couple of environment variables on top.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from .paths import SETTINGS_FILE

BASE_URL = "https://debo-ethiopia-api.onrender.com"
API_PREFIX = "/api"
DEFAULT_TIMEOUT = 30.0

AUTH_SCHEME = "JWT"
LOGIN_ROUTE = "/login"

LOGIN_PATH = "/auth/jwt/create"
REFRESH_PATH = "/auth/jwt/refresh"
LOGOUT_PATH = "/auth/logout"

ENV_BASE_URL = "DEBO_API_BASE_URL"
ENV_TIMEOUT = "DEBO_API_TIMEOUT"


class Settings(BaseModel):
    """Connection and auth settings shared by every client."""

    model_config = ConfigDict(extra="ignore")

    base_url: str = BASE_URL
    api_prefix: str = API_PREFIX
    timeout: float = DEFAULT_TIMEOUT
    auth_scheme: str = AUTH_SCHEME
    login_route: str = LOGIN_ROUTE
    login_path: str = LOGIN_PATH
    refresh_path: str = REFRESH_PATH
    logout_path: str = LOGOUT_PATH

    @property
    def api_url(self) -> str:
        """Base URL every request path is resolved against."""
        return self.base_url.rstrip("/") + self.api_prefix


def load_settings(path: Path | None = None) -> Settings:
    """Build :class:`Settings` from *path* (default :data:`SETTINGS_FILE`) and the environment.

    A missing file means defaults.  An unreadable or invalid file is logged
    and ignored rather than raised, so a bad local edit never prevents the
    client from starting.
    """
    path = path if path is not None else SETTINGS_FILE
    values: dict = {}
    if path.exists():
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(loaded, dict):
                values.update(loaded)
            else:
                logger.warning(f"Ignoring non-object settings in {path}")
        except (OSError, ValueError) as exc:
            logger.warning(f"Failed to read settings from {path}: {exc}")

    if os.environ.get(ENV_BASE_URL):
        values["base_url"] = os.environ[ENV_BASE_URL]
    if os.environ.get(ENV_TIMEOUT):
        values["timeout"] = os.environ[ENV_TIMEOUT]

    try:
        return Settings(**values)
    except ValidationError as exc:
        logger.warning(f"Invalid settings, falling back to defaults: {exc}")
        return Settings()

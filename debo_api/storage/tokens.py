"""Access-token storage.

Only the short-lived access token is kept here.  The refresh token is an
HTTP-only cookie managed by the server and the HTTP client's cookie jar;
this module never sees it.

:class:`FileTokenStore` persists the token as a small JSON document in the
user config directory (see :data:`paths.TOKENS_FILE`) under the key
``"access_token"``.  :class:`MemoryTokenStore` keeps it in process memory.
Neither store synchronises writers: the last write wins.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from .paths import TOKENS_FILE, atomic_write, ensure_parents

ACCESS_TOKEN_KEY = "access_token"


@runtime_checkable
class TokenStore(Protocol):
    """Single-slot storage for the current access token."""

    def get(self) -> str | None: ...

    def set(self, token: str) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStore:
    """Token store that lives only as long as the process."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token or None

    def get(self) -> str | None:
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore:
    """Token store backed by a JSON file.

    The file is read on every :meth:`get` so that several clients (or
    processes) pointed at the same path observe each other's writes.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path if path is not None else TOKENS_FILE

    def get(self) -> str | None:
        """Return the stored token, or ``None`` if absent or unreadable."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(f"Failed to load access token from {self.path}: {exc}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed token file {self.path}")
            return None
        token = data.get(ACCESS_TOKEN_KEY)
        return token if isinstance(token, str) and token else None

    def set(self, token: str) -> None:
        """Persist *token* atomically, replacing any previous value."""
        ensure_parents(self.path)
        atomic_write(self.path, json.dumps({ACCESS_TOKEN_KEY: token}, indent=2))
        logger.debug(f"Access token saved to {self.path}")

    def clear(self) -> None:
        """Remove the token file, if it exists."""
        try:
            if self.path.exists():
                self.path.unlink()
                logger.debug(f"Access token deleted from {self.path}")
        except OSError as exc:
            logger.error(f"Failed to delete access token at {self.path}: {exc}")

"""Login, logout and session status.

Login posts credentials to the JWT create endpoint and stores the returned
access token.  The refresh token comes back as an HTTP-only cookie and is
kept by the client's cookie jar; refreshing it is the interceptor's job,
so there is no refresh method here.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from ..models.user import LoginRequest
from .client import ApiClient, AsyncApiClient
from .errors import AuthenticationError


def _store_access(client: ApiClient | AsyncApiClient, body: Any) -> None:
    if isinstance(body, dict) and isinstance(body.get("access"), str) and body["access"]:
        client.set_access_token(body["access"])
    else:
        logger.warning("Login response did not contain an access token")


class AuthService:
    """Session operations for a blocking :class:`ApiClient`."""

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def login(self, email: str, password: str) -> dict[str, Any]:
        """Obtain an access token for *email* and store it.

        Returns the server's response body.  Raises
        :class:`httpx.HTTPStatusError` if the credentials are rejected.
        """
        payload = LoginRequest(email=email, password=password).model_dump()
        resp = self.client.post(self.client.settings.login_path, json=payload)
        resp.raise_for_status()
        body = resp.json()
        _store_access(self.client, body)
        return body

    def logout(self) -> None:
        """End the session.

        The server call is best-effort; the local token is cleared and the
        login redirect fires regardless of its outcome.
        """
        try:
            resp = self.client.post(self.client.settings.logout_path, json={})
            resp.raise_for_status()
        except (httpx.HTTPError, AuthenticationError) as exc:
            logger.error(f"Logout error: {exc}")
        finally:
            _end_session(self.client)

    def is_authenticated(self) -> bool:
        """``True`` if an access token is stored; says nothing about expiry."""
        return self.client.is_authenticated


class AsyncAuthService:
    """Session operations for an :class:`AsyncApiClient`."""

    def __init__(self, client: AsyncApiClient) -> None:
        self.client = client

    async def login(self, email: str, password: str) -> dict[str, Any]:
        payload = LoginRequest(email=email, password=password).model_dump()
        resp = await self.client.post(self.client.settings.login_path, json=payload)
        resp.raise_for_status()
        body = resp.json()
        _store_access(self.client, body)
        return body

    async def logout(self) -> None:
        try:
            resp = await self.client.post(self.client.settings.logout_path, json={})
            resp.raise_for_status()
        except (httpx.HTTPError, AuthenticationError) as exc:
            logger.error(f"Logout error: {exc}")
        finally:
            _end_session(self.client)

    def is_authenticated(self) -> bool:
        return self.client.is_authenticated


def _end_session(client: ApiClient | AsyncApiClient) -> None:
    client.clear_access_token()
    client.login_redirect(client.settings.login_route)

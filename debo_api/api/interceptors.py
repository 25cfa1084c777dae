"""Request and response interceptors for token-authenticated clients.

The request side is :func:`attach_token`.  The response side is
:class:`RefreshInterceptor`, which implements the refresh protocol:

* a ``401`` on a request that has not been retried marks the request as
  retried, refreshes the access token (the refresh token travels as a
  cookie) and replays the request once with the new token;
* a ``401`` on a request that was already retried, or on the login and
  refresh endpoints themselves, is returned unchanged;
* if the refresh fails the access token is cleared, the login redirect
  fires and :class:`~debo_api.api.errors.TokenRefreshError` is raised.

The interceptor holds no I/O of its own.  :class:`~debo_api.api.client.ApiClient`
and :class:`~debo_api.api.client.AsyncApiClient` drive it around their
blocking and awaitable ``send`` calls respectively.
"""

from __future__ import annotations

from typing import Callable, Union

import httpx
from loguru import logger

from ..models.user import TokenResponse
from ..storage.config import AUTH_SCHEME, Settings
from ..storage.tokens import TokenStore
from .context import RefreshState, RequestContext
from .errors import TokenRefreshError

LoginRedirect = Callable[[str], None]


def log_login_redirect(route: str) -> None:
    """Default login redirect: there is no browser, so just say so."""
    logger.warning(f"Login required: {route}")


def attach_token(
    context: RequestContext, store: TokenStore, scheme: str = AUTH_SCHEME
) -> RequestContext:
    """Set ``Authorization: <scheme> <token>`` on *context* if a token is stored."""
    token = store.get()
    context.sent_token = token
    if token:
        context.headers["Authorization"] = f"{scheme} {token}"
    return context


def observe_response(response: httpx.Response) -> httpx.Response:
    """Log responses that callers usually want to know about.

    Nothing is retried here: the response is returned as-is and surfaces as
    an :class:`httpx.HTTPStatusError` once the caller checks it.
    """
    if response.status_code == 403:
        logger.error(f"Access forbidden: {_body_preview(response)}")
    elif response.status_code == 429:
        logger.warning(f"Rate limited by server on {response.request.url}")
    return response


class RefreshInterceptor:
    """Response interceptor implementing the single-retry refresh protocol."""

    def __init__(
        self,
        store: TokenStore,
        settings: Settings,
        login_redirect: LoginRedirect | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.login_redirect = login_redirect or log_login_redirect

    def needs_refresh(self, context: RequestContext, response: httpx.Response) -> bool:
        """A first 401 on anything but the token endpoints themselves."""
        if response.status_code != 401 or context.retried:
            return False
        token_paths = (
            self.settings.login_path.rstrip("/"),
            self.settings.refresh_path.rstrip("/"),
        )
        return context.url.rstrip("/") not in token_paths

    def begin(self, context: RequestContext) -> None:
        """Mark *context* as retried before any refresh I/O happens."""
        context.retried = True
        context.state = RefreshState.REFRESHING

    def rotated_token(self, context: RequestContext) -> str | None:
        """Return the stored token if someone refreshed since *context* was sent.

        Called while holding the client's refresh lock, so a burst of
        concurrent 401s results in one refresh call rather than one each.
        """
        current = self.store.get()
        if current and current != context.sent_token:
            return current
        return None

    def refresh_request(
        self, http: Union[httpx.Client, httpx.AsyncClient]
    ) -> httpx.Request:
        """Build the refresh call: empty JSON body, cookies from the client jar."""
        return http.build_request("POST", self.settings.refresh_path, json={})

    def accept(self, response: httpx.Response) -> str:
        """Extract the new access token from a refresh response.

        Raises :class:`httpx.HTTPStatusError` on non-2xx and :class:`ValueError`
        if the body is not JSON or has no ``access`` field.
        """
        response.raise_for_status()
        return TokenResponse.model_validate(response.json()).access

    def complete(self, context: RequestContext, token: str) -> None:
        """Store *token* and point *context* at it for the replay."""
        self.store.set(token)
        context.headers["Authorization"] = f"{self.settings.auth_scheme} {token}"
        context.sent_token = token
        context.state = RefreshState.RETRIED
        logger.debug("Access token refreshed; replaying request")

    def fail(self, context: RequestContext, exc: Exception) -> TokenRefreshError:
        """End the session after a failed refresh and return the error to raise."""
        context.state = RefreshState.FAILED
        logger.error(f"Token refresh failed: {exc}")
        self.store.clear()
        self.login_redirect(self.settings.login_route)
        return TokenRefreshError(
            "Access token expired and refresh failed. Please log in again."
        )


def _body_preview(response: httpx.Response, limit: int = 200) -> str:
    try:
        text = response.text
    except httpx.ResponseNotRead:
        return "<streamed body>"
    return text[:limit]

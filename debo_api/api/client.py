"""Base HTTP clients for the Debo API.

:class:`ApiClient` (blocking) and :class:`AsyncApiClient` (awaitable) wrap
:mod:`httpx` with a fixed base URL and a persistent cookie jar, which is how
the server-set refresh-token cookie is forwarded.  Token-authenticated
clients run every request through the interceptors in
:mod:`debo_api.api.interceptors`; public clients send requests untouched.

Example::

    with ApiClient() as client:
        resp = client.get("/auth/users/1")
        resp.raise_for_status()
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import httpx
from loguru import logger

from ..storage.config import Settings, load_settings
from ..storage.tokens import FileTokenStore, TokenStore
from .context import RequestContext
from .errors import AuthenticationError, TokenRefreshError
from .interceptors import (
    LoginRedirect,
    RefreshInterceptor,
    attach_token,
    log_login_redirect,
    observe_response,
)

__all__ = [
    "ApiClient",
    "AsyncApiClient",
    "AuthenticationError",
    "TokenRefreshError",
]


class _ClientBase:
    """State shared by the blocking and async clients."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: TokenStore | None = None,
        *,
        authenticated: bool = True,
        login_redirect: LoginRedirect | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.store: TokenStore = store if store is not None else FileTokenStore()
        self.authenticated = authenticated
        self.login_redirect: LoginRedirect = login_redirect or log_login_redirect
        self._refresher: RefreshInterceptor | None = (
            RefreshInterceptor(self.store, self.settings, self.login_redirect)
            if authenticated
            else None
        )

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        """Return ``True`` if an access token is stored (it may still be expired)."""
        return bool(self.store.get())

    @property
    def access_token(self) -> str | None:
        return self.store.get()

    def set_access_token(self, token: str) -> None:
        self.store.set(token)

    def clear_access_token(self) -> None:
        self.store.clear()

    def _prepare(self, method: str, path: str, **kwargs: Any) -> RequestContext:
        context = RequestContext.create(method, path, **kwargs)
        if self.authenticated:
            attach_token(context, self.store, self.settings.auth_scheme)
        return context

    def _http_options(self) -> dict[str, Any]:
        return {
            "base_url": self.settings.api_url,
            "timeout": self.settings.timeout,
        }


class ApiClient(_ClientBase):
    """Blocking HTTP client with automatic access-token refresh.

    Pass ``authenticated=False`` for a public client that neither attaches
    nor refreshes tokens.  *transport* is handed to :class:`httpx.Client`
    and is mainly useful for tests (:class:`httpx.MockTransport`).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        store: TokenStore | None = None,
        *,
        authenticated: bool = True,
        login_redirect: LoginRedirect | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(
            settings,
            store,
            authenticated=authenticated,
            login_redirect=login_redirect,
        )
        self._http = httpx.Client(transport=transport, **self._http_options())
        self._refresh_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send *method* to ``api_url + path`` through the interceptors.

        Returns the final response without checking its status; callers
        decide whether to ``raise_for_status()``.
        """
        context = self._prepare(method, path, **kwargs)
        return self.send(context)

    def send(self, context: RequestContext) -> httpx.Response:
        response = self._http.send(context.build(self._http), **context.send_options)
        if self._refresher is not None and self._refresher.needs_refresh(
            context, response
        ):
            response.close()
            self._refresh(context)
            response = self._http.send(context.build(self._http), **context.send_options)
        return observe_response(response)

    def _refresh(self, context: RequestContext) -> None:
        refresher = self._refresher
        refresher.begin(context)
        with self._refresh_lock:
            token = refresher.rotated_token(context)
            if token is None:
                try:
                    resp = self._http.send(refresher.refresh_request(self._http))
                    token = refresher.accept(resp)
                except (httpx.HTTPError, ValueError) as exc:
                    raise refresher.fail(context, exc) from exc
            else:
                logger.debug("Access token already refreshed by another request")
            refresher.complete(context, token)

    # ------------------------------------------------------------------
    # HTTP verbs
    # ------------------------------------------------------------------

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", path, **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def cookies(self) -> httpx.Cookies:
        """The cookie jar holding the server-managed refresh token."""
        return self._http.cookies

    def close(self) -> None:
        """Close the underlying HTTP transport."""
        self._http.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()


class AsyncApiClient(_ClientBase):
    """Awaitable counterpart of :class:`ApiClient`.

    Every network call is a suspension point.  Cancelling the awaiting task
    cancels the in-flight request and raises :class:`asyncio.CancelledError`
    in the caller.

    Token store calls are synchronous.  The default :class:`FileTokenStore`
    reads and writes a small file inside the coroutines, which briefly blocks
    the event loop; pass a :class:`~debo_api.storage.tokens.MemoryTokenStore`
    where that matters.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        store: TokenStore | None = None,
        *,
        authenticated: bool = True,
        login_redirect: LoginRedirect | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            settings,
            store,
            authenticated=authenticated,
            login_redirect=login_redirect,
        )
        self._http = httpx.AsyncClient(transport=transport, **self._http_options())
        self._refresh_lock = asyncio.Lock()

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send *method* to ``api_url + path`` through the interceptors."""
        context = self._prepare(method, path, **kwargs)
        return await self.send(context)

    async def send(self, context: RequestContext) -> httpx.Response:
        response = await self._http.send(context.build(self._http), **context.send_options)
        if self._refresher is not None and self._refresher.needs_refresh(
            context, response
        ):
            await response.aclose()
            await self._refresh(context)
            response = await self._http.send(context.build(self._http), **context.send_options)
        return observe_response(response)

    async def _refresh(self, context: RequestContext) -> None:
        refresher = self._refresher
        refresher.begin(context)
        async with self._refresh_lock:
            token = refresher.rotated_token(context)
            if token is None:
                try:
                    resp = await self._http.send(
                        refresher.refresh_request(self._http)
                    )
                    token = refresher.accept(resp)
                except (httpx.HTTPError, ValueError) as exc:
                    raise refresher.fail(context, exc) from exc
            else:
                logger.debug("Access token already refreshed by another request")
            refresher.complete(context, token)

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)

    @property
    def cookies(self) -> httpx.Cookies:
        return self._http.cookies

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> AsyncApiClient:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

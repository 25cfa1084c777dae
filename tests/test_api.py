"""Tests for the HTTP clients and the token refresh protocol."""
import asyncio
import json

import httpx
import pytest

from debo_api.api.client import ApiClient, AsyncApiClient
from debo_api.api.context import RefreshState, RequestContext
from debo_api.api.errors import AuthenticationError, TokenRefreshError
from debo_api.api.interceptors import RefreshInterceptor, attach_token
from debo_api.storage.tokens import MemoryTokenStore

REFRESH = "/api/auth/jwt/refresh"


class Backend:
    """Fake server: ``/api/auth/users/1`` only accepts ``JWT <valid>``.

    ``refresh_status`` and ``refresh_body`` control the refresh endpoint.
    Every request seen is appended to ``requests``.
    """

    def __init__(self, valid="fresh", refresh_status=200, refresh_body=None):
        self.valid = valid
        self.refresh_status = refresh_status
        self.refresh_body = {"access": "fresh"} if refresh_body is None else refresh_body
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if request.url.path == REFRESH:
            return httpx.Response(self.refresh_status, json=self.refresh_body)
        if request.headers.get("Authorization") == f"JWT {self.valid}":
            return httpx.Response(200, json={"id": 1, "email": "a@b.c"})
        return httpx.Response(401, json={"detail": "Given token not valid"})

    def paths(self):
        return [r.url.path for r in self.requests]

    @property
    def refresh_calls(self):
        return self.paths().count(REFRESH)


def make_client(handler, store, settings, redirects=None, **kwargs):
    on_redirect = redirects.append if redirects is not None else None
    return ApiClient(
        settings,
        store,
        login_redirect=on_redirect,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


# =========================================================================
# Request context & request interceptor
# =========================================================================


class TestRequestContext:
    def test_create_splits_headers(self):
        ctx = RequestContext.create("get", "/x", headers={"X-A": "1"}, params={"q": 1})
        assert ctx.method == "GET"
        assert ctx.headers == {"X-A": "1"}
        assert ctx.options == {"params": {"q": 1}}
        assert ctx.retried is False
        assert ctx.state is RefreshState.NORMAL

    def test_create_separates_send_options(self):
        ctx = RequestContext.create("GET", "/x", follow_redirects=True, auth=None, params={"q": 1})
        assert ctx.send_options == {"follow_redirects": True, "auth": None}
        assert ctx.options == {"params": {"q": 1}}

    def test_build_uses_current_headers(self):
        ctx = RequestContext.create("GET", "/x")
        with httpx.Client(base_url="https://h/api") as http:
            ctx.headers["Authorization"] = "JWT one"
            first = ctx.build(http)
            ctx.headers["Authorization"] = "JWT two"
            second = ctx.build(http)
        assert first.headers["Authorization"] == "JWT one"
        assert second.headers["Authorization"] == "JWT two"
        assert str(second.url) == "https://h/api/x"


class TestAttachToken:
    def test_sets_jwt_header(self):
        ctx = attach_token(RequestContext.create("GET", "/x"), MemoryTokenStore("abc"))
        assert ctx.headers["Authorization"] == "JWT abc"
        assert ctx.sent_token == "abc"

    def test_no_token_leaves_headers(self):
        ctx = attach_token(RequestContext.create("GET", "/x", headers={"A": "b"}), MemoryTokenStore())
        assert ctx.headers == {"A": "b"}
        assert ctx.sent_token is None

    def test_custom_scheme(self):
        ctx = attach_token(RequestContext.create("GET", "/x"), MemoryTokenStore("abc"), "Bearer")
        assert ctx.headers["Authorization"] == "Bearer abc"


class TestRefreshInterceptor:
    def test_needs_refresh_only_on_first_401(self, store, settings):
        interceptor = RefreshInterceptor(store, settings)
        ctx = RequestContext.create("GET", "/x")
        unauthorized = httpx.Response(401)
        assert interceptor.needs_refresh(ctx, unauthorized)
        assert not interceptor.needs_refresh(ctx, httpx.Response(403))
        interceptor.begin(ctx)
        assert ctx.retried
        assert ctx.state is RefreshState.REFRESHING
        assert not interceptor.needs_refresh(ctx, unauthorized)

    @pytest.mark.parametrize("path", ["/auth/jwt/create", "/auth/jwt/create/", "/auth/jwt/refresh/"])
    def test_token_endpoints_never_refresh(self, path, store, settings):
        interceptor = RefreshInterceptor(store, settings)
        ctx = RequestContext.create("POST", path)
        assert not interceptor.needs_refresh(ctx, httpx.Response(401))

    def test_rotated_token(self, settings):
        store = MemoryTokenStore("new")
        interceptor = RefreshInterceptor(store, settings)
        ctx = RequestContext.create("GET", "/x")
        ctx.sent_token = "old"
        assert interceptor.rotated_token(ctx) == "new"
        ctx.sent_token = "new"
        assert interceptor.rotated_token(ctx) is None

    def test_fail_clears_and_redirects(self, settings, redirects):
        store = MemoryTokenStore("stale")
        interceptor = RefreshInterceptor(store, settings, redirects.append)
        ctx = RequestContext.create("GET", "/x")
        interceptor.begin(ctx)
        err = interceptor.fail(ctx, RuntimeError("boom"))
        assert ctx.state is RefreshState.FAILED
        assert isinstance(err, TokenRefreshError)
        assert isinstance(err, AuthenticationError)
        assert store.get() is None
        assert redirects == ["/login"]


# =========================================================================
# ApiClient
# =========================================================================


class TestApiClient:
    def test_attaches_token(self, settings):
        backend = Backend(valid="abc")
        with make_client(backend, MemoryTokenStore("abc"), settings) as client:
            resp = client.get("/auth/users/1")
        assert resp.status_code == 200
        assert backend.requests[0].headers["Authorization"] == "JWT abc"
        assert str(backend.requests[0].url) == "https://debo-ethiopia-api.onrender.com/api/auth/users/1"

    def test_no_header_without_token(self, store, settings):
        backend = Backend()
        with make_client(backend, store, settings, authenticated=False) as client:
            client.get("/auth/users/1")
        assert "Authorization" not in backend.requests[0].headers

    def test_public_client_ignores_stored_token(self, settings):
        backend = Backend(valid="abc")
        with make_client(backend, MemoryTokenStore("abc"), settings, authenticated=False) as client:
            resp = client.get("/auth/users/1")
        assert "Authorization" not in backend.requests[0].headers
        assert resp.status_code == 401
        assert backend.refresh_calls == 0

    def test_is_authenticated_reflects_presence(self, settings):
        store = MemoryTokenStore()
        client = make_client(Backend(), store, settings)
        assert not client.is_authenticated
        client.set_access_token("expired-but-present")
        assert client.is_authenticated
        assert client.access_token == "expired-but-present"
        client.clear_access_token()
        assert not client.is_authenticated
        client.close()

    def test_close(self, store, settings):
        client = make_client(Backend(), store, settings)
        client.close()
        assert client._http.is_closed

    def test_refresh_and_retry_once(self, settings, redirects):
        backend = Backend(valid="fresh")
        store = MemoryTokenStore("stale")
        with make_client(backend, store, settings, redirects) as client:
            resp = client.get("/auth/users/1")
        assert resp.status_code == 200
        assert resp.json()["email"] == "a@b.c"
        assert backend.paths() == ["/api/auth/users/1", REFRESH, "/api/auth/users/1"]
        assert backend.requests[2].headers["Authorization"] == "JWT fresh"
        assert store.get() == "fresh"
        assert redirects == []

    def test_refresh_request_shape(self, settings):
        backend = Backend(valid="fresh")
        with make_client(backend, MemoryTokenStore("stale"), settings) as client:
            client.get("/auth/users/1")
        refresh = backend.requests[1]
        assert refresh.method == "POST"
        assert refresh.content == b"{}"
        assert "Authorization" not in refresh.headers

    def test_refresh_forwards_cookie(self, settings):
        def handler(request):
            if request.url.path == "/api/auth/jwt/create":
                return httpx.Response(
                    200,
                    json={"access": "stale"},
                    headers={"set-cookie": "refresh=rt-123; Path=/; HttpOnly"},
                )
            return backend(request)

        backend = Backend(valid="fresh")
        with make_client(handler, MemoryTokenStore(), settings) as client:
            client.post("/auth/jwt/create", json={})
            client.set_access_token("stale")
            client.get("/auth/users/1")
        refresh = [r for r in backend.requests if r.url.path == REFRESH][0]
        assert "refresh=rt-123" in refresh.headers["cookie"]

    def test_replayed_request_keeps_body_and_params(self, settings):
        seen = []

        def handler(request):
            if request.url.path == REFRESH:
                return httpx.Response(200, json={"access": "fresh"})
            seen.append((request.headers.get("Authorization"), request.url.params.get("q"), request.content))
            if request.headers.get("Authorization") == "JWT fresh":
                return httpx.Response(201, json={"id": 9})
            return httpx.Response(401)

        with make_client(handler, MemoryTokenStore("stale"), settings) as client:
            resp = client.post("/projects", json={"title": "x"}, params={"q": "1"})
        assert resp.status_code == 201
        assert seen[0][1:] == seen[1][1:]
        assert seen[1][1] == "1"
        assert json.loads(seen[1][2]) == {"title": "x"}

    def test_second_401_is_not_refreshed(self, settings, redirects):
        backend = Backend(valid="never-issued")
        store = MemoryTokenStore("stale")
        with make_client(backend, store, settings, redirects) as client:
            resp = client.get("/auth/users/1")
            assert resp.status_code == 401
            with pytest.raises(httpx.HTTPStatusError):
                resp.raise_for_status()
        assert backend.refresh_calls == 1
        assert len(backend.requests) == 3
        assert store.get() == "fresh"
        assert redirects == []

    def test_each_request_gets_its_own_retry(self, settings):
        backend = Backend(valid="never-issued")
        with make_client(backend, MemoryTokenStore("stale"), settings) as client:
            client.get("/auth/users/1")
            client.get("/auth/users/1")
        # The second request carried "fresh", got 401, and refreshed again.
        assert backend.refresh_calls == 2

    def test_refresh_rejected(self, settings, redirects):
        backend = Backend(refresh_status=401, refresh_body={"detail": "expired"})
        store = MemoryTokenStore("stale")
        with make_client(backend, store, settings, redirects) as client:
            with pytest.raises(TokenRefreshError) as excinfo:
                client.get("/auth/users/1")
        assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)
        assert store.get() is None
        assert redirects == ["/login"]
        assert backend.paths() == ["/api/auth/users/1", REFRESH]

    def test_refresh_network_error(self, settings, redirects):
        def handler(request):
            if request.url.path == REFRESH:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(401)

        store = MemoryTokenStore("stale")
        with make_client(handler, store, settings, redirects) as client:
            with pytest.raises(TokenRefreshError) as excinfo:
                client.get("/auth/users/1")
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
        assert store.get() is None
        assert redirects == ["/login"]

    def test_refresh_without_access_field(self, settings, redirects):
        backend = Backend(refresh_body={"unexpected": True})
        store = MemoryTokenStore("stale")
        with make_client(backend, store, settings, redirects) as client:
            with pytest.raises(TokenRefreshError):
                client.get("/auth/users/1")
        assert store.get() is None
        assert redirects == ["/login"]

    def test_reuses_token_refreshed_elsewhere(self, settings):
        store = MemoryTokenStore("stale")
        refreshes = []

        def handler(request):
            if request.url.path == REFRESH:
                refreshes.append(request)
                return httpx.Response(200, json={"access": "other"})
            if request.headers.get("Authorization") == "JWT rotated":
                return httpx.Response(200, json={})
            # Another client refreshed while this request was in flight.
            store.set("rotated")
            return httpx.Response(401)

        with make_client(handler, store, settings) as client:
            resp = client.get("/auth/users/1")
        assert resp.status_code == 200
        assert refreshes == []

    def test_transport_error_propagates(self, store, settings):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with make_client(handler, store, settings) as client:
            with pytest.raises(httpx.ReadTimeout):
                client.get("/projects")

    @pytest.mark.parametrize("status", [403, 404, 429, 500])
    def test_other_errors_pass_through(self, status, settings, redirects):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(status, json={"detail": "nope"})

        store = MemoryTokenStore("abc")
        with make_client(handler, store, settings, redirects) as client:
            resp = client.get("/projects")
        assert resp.status_code == status
        assert len(calls) == 1
        assert store.get() == "abc"
        assert redirects == []

    def test_forbidden_is_logged(self, settings, log_messages):
        def handler(request):
            return httpx.Response(403, json={"detail": "no permission"})

        with make_client(handler, MemoryTokenStore("abc"), settings) as client:
            client.get("/projects")
        assert any("Access forbidden" in m and "no permission" in m for m in log_messages)

    def test_rate_limit_is_logged(self, settings, log_messages):
        def handler(request):
            return httpx.Response(429)

        with make_client(handler, MemoryTokenStore("abc"), settings) as client:
            client.get("/projects")
        assert any("Rate limited" in m for m in log_messages)


# =========================================================================
# AsyncApiClient
# =========================================================================


def make_async_client(handler, store, settings, redirects=None, **kwargs):
    on_redirect = redirects.append if redirects is not None else None
    return AsyncApiClient(
        settings,
        store,
        login_redirect=on_redirect,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestAsyncApiClient:
    def test_refresh_and_retry_once(self, settings):
        backend = Backend(valid="fresh")
        store = MemoryTokenStore("stale")

        async def run():
            async with make_async_client(backend, store, settings) as client:
                return await client.get("/auth/users/1")

        resp = asyncio.run(run())
        assert resp.status_code == 200
        assert backend.paths() == ["/api/auth/users/1", REFRESH, "/api/auth/users/1"]
        assert store.get() == "fresh"

    def test_refresh_failure(self, settings, redirects):
        backend = Backend(refresh_status=400)
        store = MemoryTokenStore("stale")

        async def run():
            async with make_async_client(backend, store, settings, redirects) as client:
                await client.get("/auth/users/1")

        with pytest.raises(TokenRefreshError):
            asyncio.run(run())
        assert store.get() is None
        assert redirects == ["/login"]

    def test_concurrent_401s_share_one_refresh(self, settings):
        store = MemoryTokenStore("stale")
        refreshes = []

        async def handler(request):
            await asyncio.sleep(0)
            if request.url.path == REFRESH:
                refreshes.append(request)
                await asyncio.sleep(0)
                return httpx.Response(200, json={"access": f"fresh-{len(refreshes)}"})
            if request.headers.get("Authorization", "").startswith("JWT fresh"):
                return httpx.Response(200, json={"ok": True})
            return httpx.Response(401)

        async def run():
            async with make_async_client(handler, store, settings) as client:
                return await asyncio.gather(*(client.get("/auth/users/1") for _ in range(3)))

        responses = asyncio.run(run())
        assert [r.status_code for r in responses] == [200, 200, 200]
        assert len(refreshes) == 1
        assert store.get() == "fresh-1"

    def test_cancellation_propagates(self, settings):
        started = []

        async def handler(request):
            started.append(request)
            await asyncio.sleep(10)
            return httpx.Response(200)

        async def run():
            async with make_async_client(handler, MemoryTokenStore("abc"), settings) as client:
                task = asyncio.create_task(client.get("/projects"))
                while not started:
                    await asyncio.sleep(0)
                task.cancel()
                await task

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(run())

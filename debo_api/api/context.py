"""Per-request state carried through the interceptor pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

import httpx

# Arguments httpx takes on send() rather than build_request().
SEND_OPTIONS = ("auth", "follow_redirects")


class RefreshState(str, Enum):
    """Where a request is in the refresh protocol."""

    NORMAL = "normal"
    REFRESHING = "refreshing"
    RETRIED = "retried"
    FAILED = "failed"


@dataclass
class RequestContext:
    """Mutable description of one logical request.

    A fresh :class:`httpx.Request` is built from the context on every
    dispatch, so header changes made by the refresh protocol are picked up
    when the request is replayed.  ``retried`` is set once the request has
    been through a refresh and guarantees it is replayed at most once.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)
    retried: bool = False
    state: RefreshState = RefreshState.NORMAL
    sent_token: str | None = None
    send_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, method: str, url: str, **kwargs: Any) -> "RequestContext":
        """Build a context from httpx-style request keyword arguments."""
        headers = dict(kwargs.pop("headers", None) or {})
        send_options = {k: kwargs.pop(k) for k in SEND_OPTIONS if k in kwargs}
        return cls(
            method=method.upper(),
            url=url,
            headers=headers,
            options=kwargs,
            send_options=send_options,
        )

    def build(self, http: Union[httpx.Client, httpx.AsyncClient]) -> httpx.Request:
        return http.build_request(
            self.method, self.url, headers=self.headers, **self.options
        )

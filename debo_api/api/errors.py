"""Exceptions raised by the API layer.

HTTP and transport failures are not wrapped: callers see the
:class:`httpx.HTTPStatusError` / :class:`httpx.TransportError` that httpx
raises.  Only session-level failures get their own types.
"""


class AuthenticationError(Exception):
    """Raised when authentication fails and cannot be automatically recovered."""


class TokenRefreshError(AuthenticationError):
    """Raised when an expired access token could not be refreshed.

    By the time this is raised the stored access token has been cleared and
    the login redirect has fired.  The underlying failure is available as
    ``__cause__``.
    """

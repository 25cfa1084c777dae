"""Debo API client layer -- re-exports the clients, services and errors."""

from debo_api.api.auth import AsyncAuthService, AuthService
from debo_api.api.client import ApiClient, AsyncApiClient
from debo_api.api.errors import AuthenticationError, TokenRefreshError
from debo_api.api.resources import AsyncResource, Resource
from debo_api.api.services import (
    async_project_service,
    async_user_service,
    project_service,
    public_client,
    user_service,
)

__all__ = [
    "ApiClient",
    "AsyncApiClient",
    "AsyncAuthService",
    "AsyncResource",
    "AuthService",
    "AuthenticationError",
    "Resource",
    "TokenRefreshError",
    "async_project_service",
    "async_user_service",
    "project_service",
    "public_client",
    "user_service",
]

"""Concrete resources exposed by the Debo backend."""

from __future__ import annotations

from ..models.project import Project
from ..models.user import User
from ..storage.config import Settings
from .client import ApiClient, AsyncApiClient
from .resources import AsyncResource, Resource

PROJECTS_ENDPOINT = "/projects"
USERS_ENDPOINT = "/auth/users"


def public_client(settings: Settings | None = None, **kwargs) -> ApiClient:
    """Client for endpoints that need no token (projects are public)."""
    return ApiClient(settings, authenticated=False, **kwargs)


def project_service(client: ApiClient) -> Resource[Project]:
    return Resource(client, PROJECTS_ENDPOINT, Project)


def user_service(client: ApiClient) -> Resource[User]:
    return Resource(client, USERS_ENDPOINT, User)


def async_project_service(client: AsyncApiClient) -> AsyncResource[Project]:
    return AsyncResource(client, PROJECTS_ENDPOINT, Project)


def async_user_service(client: AsyncApiClient) -> AsyncResource[User]:
    return AsyncResource(client, USERS_ENDPOINT, User)

"""Re-export all Debo data models for convenient access."""

from debo_api.models.page import Page
from debo_api.models.project import Project
from debo_api.models.user import LoginRequest, TokenResponse, User

__all__ = [
    "Page",
    "Project",
    # User models
    "LoginRequest",
    "TokenResponse",
    "User",
]

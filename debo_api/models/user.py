"""Pydantic v2 models for users and authentication payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    """A user account as served by ``/auth/users``; sparse bodies parse."""

    model_config = ConfigDict(extra="allow")

    id: int | None = None
    email: str = ""


class LoginRequest(BaseModel):
    """Credentials posted to the JWT create endpoint."""

    email: str
    password: str


class TokenResponse(BaseModel):
    """Body of a successful login or refresh.

    Only ``access`` is guaranteed; login responses carry extra fields that
    are kept as-is.
    """

    model_config = ConfigDict(extra="allow")

    access: str

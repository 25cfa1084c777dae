"""Pydantic v2 model for projects."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Project(BaseModel):
    """A project as served by ``/projects``.

    Every field is optional so that whatever the server returns parses;
    unknown fields are kept.
    """

    model_config = ConfigDict(extra="allow")

    id: int | None = None
    title: str = ""
    description: str = ""

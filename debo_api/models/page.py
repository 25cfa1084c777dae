"""Paginated list envelope returned by list endpoints."""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of results: ``{count, next, previous, results}``."""

    count: int
    next: Optional[str] = None
    previous: Optional[str] = None
    results: list[T] = []

    @property
    def has_next(self) -> bool:
        return self.next is not None

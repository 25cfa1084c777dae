"""Generic CRUD accessors bound to one endpoint path.

A resource is a thin passthrough: each method issues one request, raises
:class:`httpx.HTTPStatusError` on non-2xx responses and parses the body
into the resource's pydantic model.  Extra keyword arguments (``params``,
``headers``, ``timeout``...) are forwarded to the client unchanged.

Example::

    projects = Resource(client, "/projects", Project)
    page = projects.list_all(params={"page": 2})
    first = projects.get(page.results[0].id)
"""

from __future__ import annotations

from typing import Any, Generic, Mapping, TypeVar, Union

import httpx
from pydantic import BaseModel

from ..models.page import Page
from .client import ApiClient, AsyncApiClient

T = TypeVar("T", bound=BaseModel)

ResourceId = Union[int, str]
Payload = Union[BaseModel, Mapping[str, Any]]


class _ResourceBase(Generic[T]):
    def __init__(self, endpoint: str, model: type[T]) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.model = model

    def _item_path(self, resource_id: ResourceId) -> str:
        return f"{self.endpoint}/{resource_id}"

    @staticmethod
    def _dump(data: Payload, partial: bool = False) -> dict[str, Any]:
        if isinstance(data, BaseModel):
            if partial:
                return data.model_dump(mode="json", exclude_unset=True)
            return data.model_dump(mode="json", exclude_none=True)
        return dict(data)

    def _parse_page(self, resp: httpx.Response) -> Page[T]:
        resp.raise_for_status()
        return Page[self.model].model_validate(resp.json())

    def _parse_item(self, resp: httpx.Response) -> T:
        resp.raise_for_status()
        return self.model.model_validate(resp.json())

    def _parse_optional(self, resp: httpx.Response) -> T | None:
        resp.raise_for_status()
        if not resp.content:
            return None
        return self.model.model_validate(resp.json())


class Resource(_ResourceBase[T]):
    """CRUD operations on *endpoint* through a blocking :class:`ApiClient`."""

    def __init__(self, client: ApiClient, endpoint: str, model: type[T]) -> None:
        super().__init__(endpoint, model)
        self.client = client

    def list_all(self, **kwargs: Any) -> Page[T]:
        """GET the endpoint and return its paginated envelope."""
        return self._parse_page(self.client.get(self.endpoint, **kwargs))

    def get(self, resource_id: ResourceId, **kwargs: Any) -> T:
        return self._parse_item(self.client.get(self._item_path(resource_id), **kwargs))

    def create(self, data: Payload, **kwargs: Any) -> T:
        resp = self.client.post(self.endpoint, json=self._dump(data), **kwargs)
        return self._parse_item(resp)

    def replace(self, resource_id: ResourceId, data: Payload, **kwargs: Any) -> T:
        resp = self.client.put(
            self._item_path(resource_id), json=self._dump(data), **kwargs
        )
        return self._parse_item(resp)

    def update(self, resource_id: ResourceId, data: Payload, **kwargs: Any) -> T:
        """PATCH only the given fields.

        When *data* is a model, only fields that were explicitly set are sent.
        """
        resp = self.client.patch(
            self._item_path(resource_id), json=self._dump(data, partial=True), **kwargs
        )
        return self._parse_item(resp)

    def remove(self, resource_id: ResourceId, **kwargs: Any) -> T | None:
        """DELETE the item; returns the echoed entity, or ``None`` for an empty body."""
        return self._parse_optional(
            self.client.delete(self._item_path(resource_id), **kwargs)
        )


class AsyncResource(_ResourceBase[T]):
    """CRUD operations on *endpoint* through an :class:`AsyncApiClient`."""

    def __init__(self, client: AsyncApiClient, endpoint: str, model: type[T]) -> None:
        super().__init__(endpoint, model)
        self.client = client

    async def list_all(self, **kwargs: Any) -> Page[T]:
        return self._parse_page(await self.client.get(self.endpoint, **kwargs))

    async def get(self, resource_id: ResourceId, **kwargs: Any) -> T:
        resp = await self.client.get(self._item_path(resource_id), **kwargs)
        return self._parse_item(resp)

    async def create(self, data: Payload, **kwargs: Any) -> T:
        resp = await self.client.post(self.endpoint, json=self._dump(data), **kwargs)
        return self._parse_item(resp)

    async def replace(self, resource_id: ResourceId, data: Payload, **kwargs: Any) -> T:
        resp = await self.client.put(
            self._item_path(resource_id), json=self._dump(data), **kwargs
        )
        return self._parse_item(resp)

    async def update(self, resource_id: ResourceId, data: Payload, **kwargs: Any) -> T:
        resp = await self.client.patch(
            self._item_path(resource_id), json=self._dump(data, partial=True), **kwargs
        )
        return self._parse_item(resp)

    async def remove(self, resource_id: ResourceId, **kwargs: Any) -> T | None:
        resp = await self.client.delete(self._item_path(resource_id), **kwargs)
        return self._parse_optional(resp)

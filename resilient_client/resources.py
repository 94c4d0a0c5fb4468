"""Collection and by-id helpers for REST resources."""

import math
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict

from .client import APIClient
from .transform import APIResponse

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

ResourceID = Union[str, int]


class PageMeta(BaseModel):
    """Pagination metadata returned alongside list responses."""

    model_config = ConfigDict(extra="allow")

    total: int = 0
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class ResourceEndpoint:
    """Thin wrapper around ``/resource`` and ``/resource/{id}`` conventions."""

    def __init__(self, client: APIClient, base_path: str):
        self.client = client
        self.base_path = "/" + base_path.strip("/")

    def item_path(self, resource_id: ResourceID) -> str:
        return f"{self.base_path}/{resource_id}"

    def sub_path(self, resource_id: ResourceID, name: str) -> str:
        return f"{self.item_path(resource_id)}/{name.strip('/')}"

    async def list(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        **filters: Any
    ) -> APIResponse:
        """Fetch one page of the collection; ``meta`` is parsed into :class:`PageMeta`."""
        params = {key: value for key, value in filters.items() if value is not None}
        params["page"] = page
        params["limit"] = max(1, min(limit, MAX_PAGE_SIZE))

        response = await self.client.get(self.base_path, params=params)
        meta = response.meta
        if isinstance(meta, dict):
            meta = PageMeta.model_validate(meta)
        return APIResponse(data=response.data, meta=meta)

    async def retrieve(self, resource_id: ResourceID) -> Any:
        return (await self.client.get(self.item_path(resource_id))).data

    async def create(self, body: Any, idempotent: bool = False) -> Any:
        """Create a resource. Pass ``idempotent=True`` only when resubmitting is safe."""
        return (await self.client.post(self.base_path, body, idempotent=idempotent)).data

    async def update(self, resource_id: ResourceID, body: Any) -> Any:
        return (await self.client.put(self.item_path(resource_id), body)).data

    async def partial_update(
        self,
        resource_id: ResourceID,
        body: Any,
        idempotent: Optional[bool] = None
    ) -> Any:
        return (await self.client.patch(self.item_path(resource_id), body, idempotent=idempotent)).data

    async def destroy(self, resource_id: ResourceID) -> None:
        await self.client.delete(self.item_path(resource_id))

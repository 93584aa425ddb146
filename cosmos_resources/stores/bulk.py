"""
CosmosBulkWriter — fire-and-forget writes over the bulk connection.

Writes skip the content response to save bandwidth and RU; nothing is
returned.  Use CosmosWriter when the new ETag is needed.
"""

from __future__ import annotations

from typing import Any, Generic

from azure.core import MatchConditions
from azure.cosmos import ContainerProxy

from cosmos_resources.config import CosmosOptions
from cosmos_resources.resource import R, to_document
from cosmos_resources.stores.base import call_store, request_options
from cosmos_resources.stores.writer import PatchOperations, _require_identity


class CosmosBulkWriter(Generic[R]):
    def __init__(
        self,
        container: ContainerProxy,
        options: CosmosOptions | None = None,
        priority: str | None = None,
    ):
        self.container = container
        self.priority = priority
        self._serializer_options = options.serializer_options if options else {}

    def _body(self, resource: R) -> dict[str, Any]:
        _require_identity(resource)
        return to_document(resource, self._serializer_options)

    async def _call(self, fn: Any, **kwargs: Any) -> None:
        await call_store(fn, **request_options(self.priority), **kwargs)

    async def create(self, resource: R) -> None:
        await self._call(self.container.create_item, body=self._body(resource), no_response=True)

    async def write(self, resource: R) -> None:
        await self._call(self.container.upsert_item, body=self._body(resource), no_response=True)

    async def replace(self, resource: R) -> None:
        kwargs: dict[str, Any] = {"item": resource.document_id, "body": self._body(resource)}
        if resource.etag is not None:
            kwargs["etag"] = resource.etag
            kwargs["match_condition"] = MatchConditions.IfNotModified
        await self._call(self.container.replace_item, no_response=True, **kwargs)

    async def patch(
        self,
        document_id: str,
        partition_key: str,
        operations: PatchOperations,
        filter_predicate: str | None = None,
    ) -> None:
        kwargs: dict[str, Any] = {}
        if filter_predicate:
            kwargs["filter_predicate"] = filter_predicate
        await self._call(
            self.container.patch_item,
            item=document_id,
            partition_key=partition_key,
            patch_operations=list(operations),
            no_response=True,
            **kwargs,
        )

    async def delete(self, document_id: str, partition_key: str) -> None:
        await self._call(self.container.delete_item, item=document_id, partition_key=partition_key)

    async def delete_partition(self, partition_key: str) -> None:
        await self._call(self.container.delete_all_items_by_partition_key, partition_key=partition_key)

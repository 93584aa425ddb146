"""
CosmosReader — typed point reads and queries over one container.

Every document handed back carries its ETag so it can be fed straight
into CosmosWriter.replace().
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Generic, Iterator

from azure.cosmos import ContainerProxy

from cosmos_resources.config import CosmosOptions
from cosmos_resources.errors import NotFound
from cosmos_resources.resource import R, from_document
from cosmos_resources.stores.base import call_store, is_cancelled, request_options

logger = logging.getLogger("cosmos-resources.reader")

READ_ALL_QUERY = "SELECT * FROM c"


@dataclass
class PagedResult(Generic[R]):
    items: list[Any] = field(default_factory=list)
    continuation_token: str | None = None


def _next_page(pages: Iterator) -> list[dict[str, Any]] | None:
    try:
        return list(next(pages))
    except StopIteration:
        return None


class CosmosReader(Generic[R]):
    def __init__(
        self,
        container: ContainerProxy,
        resource_type: type[R],
        options: CosmosOptions | None = None,
        priority: str | None = None,
    ):
        self.container = container
        self.resource_type = resource_type
        self.priority = priority
        self._options = options

    # -- point reads ---------------------------------------------------------

    async def read(self, document_id: str, partition_key: str) -> R:
        """Read a document; raises NotFound when it does not exist."""
        document = await call_store(
            self.container.read_item, item=document_id, partition_key=partition_key,
            **request_options(self.priority),
        )
        return from_document(self.resource_type, document)

    async def find(self, document_id: str, partition_key: str) -> R | None:
        """Like read(), but returns None instead of raising NotFound."""
        try:
            return await self.read(document_id, partition_key)
        except NotFound:
            return None

    async def exists(self, document_id: str, partition_key: str) -> bool:
        return await self.find(document_id, partition_key) is not None

    # -- streaming queries ---------------------------------------------------

    async def read_all(
        self, partition_key: str, *, cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[R]:
        async for resource in self.query(READ_ALL_QUERY, partition_key, cancel=cancel):
            yield resource

    async def query(
        self,
        query: str,
        partition_key: str,
        *,
        parameters: list[dict[str, Any]] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[R]:
        """Single-partition query yielding resources lazily, page by page.

        Always use ``parameters`` instead of interpolating values into the
        query text.
        """
        pages = self._pages(query, parameters, partition_key)
        async for page in self._drain(pages, cancel):
            for document in page:
                yield from_document(self.resource_type, document)

    async def query_documents(
        self,
        query: str,
        partition_key: str | None = None,
        *,
        parameters: list[dict[str, Any]] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Raw documents (projections, aggregates). Cross-partition when no key is given."""
        pages = self._pages(query, parameters, partition_key)
        async for page in self._drain(pages, cancel):
            for document in page:
                yield document

    async def cross_partition_query(
        self,
        query: str,
        *,
        parameters: list[dict[str, Any]] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[R]:
        pages = self._pages(query, parameters, None)
        async for page in self._drain(pages, cancel):
            for document in page:
                yield from_document(self.resource_type, document)

    async def query_batches(
        self,
        query: str,
        partition_key: str | None = None,
        *,
        parameters: list[dict[str, Any]] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[list[R]]:
        """Yield whole result pages instead of single resources."""
        pages = self._pages(query, parameters, partition_key)
        async for page in self._drain(pages, cancel):
            yield [from_document(self.resource_type, d) for d in page]

    # -- paged queries -------------------------------------------------------

    async def paged_query(
        self,
        query: str,
        partition_key: str | None,
        page_size: int | None = None,
        continuation_token: str | None = None,
        *,
        parameters: list[dict[str, Any]] | None = None,
    ) -> PagedResult[R]:
        """Fetch one page; pass the returned continuation token to get the next.

        A ``partition_key`` of None runs the query across partitions.
        """
        pages = self._pages(
            query, parameters, partition_key,
            page_size=page_size, continuation_token=continuation_token, paged=True,
        )
        page = await call_store(_next_page, pages)
        if page is None:
            return PagedResult()
        return PagedResult(
            items=[from_document(self.resource_type, d) for d in page],
            continuation_token=getattr(pages, "continuation_token", None),
        )

    async def cross_partition_paged_query(
        self,
        query: str,
        page_size: int | None = None,
        continuation_token: str | None = None,
        *,
        parameters: list[dict[str, Any]] | None = None,
    ) -> PagedResult[R]:
        return await self.paged_query(
            query, None, page_size, continuation_token, parameters=parameters,
        )

    # -- helpers -------------------------------------------------------------

    def _pages(
        self,
        query: str,
        parameters: list[dict[str, Any]] | None,
        partition_key: str | None,
        *,
        page_size: int | None = None,
        continuation_token: str | None = None,
        paged: bool = False,
    ) -> Iterator:
        kwargs: dict[str, Any] = {"query": query, **request_options(self.priority)}
        if parameters:
            kwargs["parameters"] = parameters
        if partition_key is not None:
            kwargs["partition_key"] = partition_key
        else:
            kwargs["enable_cross_partition_query"] = True
        if page_size:
            kwargs["max_item_count"] = page_size
        if paged and self._options and self._options.continuation_token_limit_kb is not None:
            kwargs["continuation_token_limit"] = self._options.continuation_token_limit_kb
        logger.debug("Cosmos query on %s: %.200s", self.container.id, query)
        return self.container.query_items(**kwargs).by_page(continuation_token)

    @staticmethod
    async def _drain(pages: Iterator, cancel: asyncio.Event | None) -> AsyncIterator[list[dict[str, Any]]]:
        while not is_cancelled(cancel):
            page = await call_store(_next_page, pages)
            if page is None:
                return
            yield page

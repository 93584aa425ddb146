"""
CosmosChangeFeedSource — pulls one page of the container's change feed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from azure.cosmos import ContainerProxy

from cosmos_resources.stores.base import call_store


class CosmosChangeFeedSource:
    def __init__(self, container: ContainerProxy, max_item_count: int, start_time: datetime | None = None):
        self.container = container
        self.max_item_count = max_item_count
        self.start_time = start_time

    async def read(self, continuation: str | None) -> tuple[list[dict[str, Any]], str | None]:
        """Return the next batch of changed documents and the continuation after it."""
        return await call_store(self._read_page, continuation)

    def _read_page(self, continuation: str | None) -> tuple[list[dict[str, Any]], str | None]:
        kwargs: dict[str, Any] = {"max_item_count": self.max_item_count}
        if continuation:
            kwargs["continuation"] = continuation
        elif self.start_time is not None:
            kwargs["start_time"] = self.start_time
        else:
            kwargs["is_start_from_beginning"] = True

        pages = self.container.query_items_change_feed(**kwargs).by_page()
        page = next(pages, None)
        items = list(page) if page is not None else []

        token = getattr(pages, "continuation_token", None)
        if token is None:
            # Older SDKs only expose the feed position via the response ETag.
            connection = getattr(self.container, "client_connection", None)
            headers = getattr(connection, "last_response_headers", None) or {}
            token = headers.get("etag")
        return items, token or continuation

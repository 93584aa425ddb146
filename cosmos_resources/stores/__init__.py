"""
Typed document stores over Cosmos containers.

Provides:
  - CosmosReader      point reads, queries, paged queries
  - CosmosWriter      create/replace/patch/delete + update / update_or_create
  - CosmosBulkWriter  writes over the bulk connection, no content response

All stores take an optional request priority (PRIORITY_LOW / PRIORITY_HIGH).

Readers and writers are bound to one container and one resource type;
obtain them through CosmosResources so the container is resolved from
the registry:

    writer = resources.writer(Order)
    order = await writer.update("o-1", "customer-7", lambda o: o.lines.append(line), max_retries=3)
"""

from __future__ import annotations

from cosmos_resources.stores.base import PRIORITY_HIGH, PRIORITY_LOW
from cosmos_resources.stores.bulk import CosmosBulkWriter
from cosmos_resources.stores.reader import READ_ALL_QUERY, CosmosReader, PagedResult
from cosmos_resources.stores.writer import CosmosWriter

__all__ = [
    "CosmosBulkWriter",
    "CosmosReader",
    "CosmosWriter",
    "PRIORITY_HIGH",
    "PRIORITY_LOW",
    "PagedResult",
    "READ_ALL_QUERY",
]

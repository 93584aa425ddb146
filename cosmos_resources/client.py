"""
CosmosResources — one object that owns the registry, the connection
cache and the locator for a process.

Construct it once at startup, register resource types, then hand out
readers, writers and change-feed listeners:

    resources = CosmosResources(CosmosOptions.from_env())
    resources.register(Order, "orders")
    resources.register(ResourceKey.family(Envelope), "envelopes", database_name="events")

    orders = resources.writer(Order)
    listener = resources.listener(Order, OrderProjector(), ChangeFeedOptions(max_degree_of_parallelism=4))

    ...
    resources.close()   # disposes every CosmosClient
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from cosmos_resources.autoincrement import AutoIncrementCounter, AutoIncrementProvider
from cosmos_resources.changefeed import (
    LEASES_CONTAINER,
    ChangeFeedListener,
    ChangeFeedProcessor,
    CosmosChangeFeedSource,
    LeaseStore,
)
from cosmos_resources.config import ChangeFeedOptions, CosmosOptions
from cosmos_resources.connections import ClientFactory, ConnectionCache
from cosmos_resources.initializer import CosmosInitializer
from cosmos_resources.locator import ContainerLocator
from cosmos_resources.registry import ContainerBinding, ContainerRegistry
from cosmos_resources.resource import R
from cosmos_resources.stores import CosmosBulkWriter, CosmosReader, CosmosWriter
from cosmos_resources.stores.base import PRIORITY_LOW

logger = logging.getLogger("cosmos-resources")


def _priority(low_priority: bool) -> str | None:
    return PRIORITY_LOW if low_priority else None


class CosmosResources:
    def __init__(self, default_options: CosmosOptions, client_factory: ClientFactory | None = None):
        self.registry = ContainerRegistry(default_options)
        self.connections = ConnectionCache(client_factory)
        self.locator = ContainerLocator(self.registry, self.connections)

    def register(
        self,
        resource_type: Any,
        container_name: str,
        database_name: str | None = None,
        options: CosmosOptions | None = None,
    ) -> ContainerBinding:
        return self.registry.register(resource_type, container_name, database_name, options)

    def _options(self, resource_type: Any) -> CosmosOptions:
        return self.registry.options_for(self.registry.resolve(resource_type))

    def reader(self, resource_type: type[R], *, low_priority: bool = False) -> CosmosReader[R]:
        """Reader for ``resource_type``.

        ``low_priority`` marks every request as low priority so it is
        throttled first when the account runs out of throughput.
        """
        return CosmosReader(
            self.locator.locate(resource_type), resource_type,
            self._options(resource_type), _priority(low_priority),
        )

    def bulk_reader(self, resource_type: type[R], *, low_priority: bool = False) -> CosmosReader[R]:
        """Reader over the bulk connection, for large scans."""
        return CosmosReader(
            self.locator.locate(resource_type, bulk=True), resource_type,
            self._options(resource_type), _priority(low_priority),
        )

    def writer(self, resource_type: type[R], *, low_priority: bool = False) -> CosmosWriter[R]:
        options = self._options(resource_type)
        reader = CosmosReader(
            self.locator.locate(resource_type), resource_type, options, _priority(low_priority),
        )
        return CosmosWriter(reader.container, reader, options)

    def bulk_writer(self, resource_type: type[R], *, low_priority: bool = False) -> CosmosBulkWriter[R]:
        return CosmosBulkWriter(
            self.locator.locate(resource_type, bulk=True),
            self._options(resource_type),
            _priority(low_priority),
        )

    def auto_increment(self) -> AutoIncrementProvider:
        """Requires AutoIncrementCounter to be registered."""
        return AutoIncrementProvider(self.writer(AutoIncrementCounter))

    def listener(
        self,
        resource_type: type[R],
        processor: ChangeFeedProcessor[R],
        options: ChangeFeedOptions | None = None,
        processor_name: str | None = None,
    ) -> ChangeFeedListener[R]:
        """Change-feed listener for ``resource_type``.

        The lease lives in the "leases" container of the same database,
        keyed by ``processor_name`` (defaults to the container name).
        """
        options = options or ChangeFeedOptions()
        binding = self.registry.resolve(resource_type)
        source = CosmosChangeFeedSource(
            self.locator.locate(resource_type), options.max_item_count, options.start_time,
        )
        leases = LeaseStore(
            self.locator.locate_sibling(resource_type, LEASES_CONTAINER),
            lease_token=processor_name or binding.container_name,
            owner=str(uuid.uuid4()),
        )
        return ChangeFeedListener(resource_type, source, leases, processor, options)

    def initializer(self) -> CosmosInitializer:
        return CosmosInitializer(self.connections, self.registry)

    def close(self) -> None:
        logger.info("Closing %d cached CosmosClient(s)", len(self.connections))
        self.connections.close_all()

    def __enter__(self) -> "CosmosResources":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

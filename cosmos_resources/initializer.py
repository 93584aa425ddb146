"""
Database/container initialisation — idempotent create-if-not-exists.

Run once at startup, before any listener starts:

    initializer = CosmosInitializer(resources.connections, resources.registry)
    initializer.add(ContainerInitializer("orders", "/customerId"))
    initializer.add(LEASES_INITIALIZER)
    await initializer.initialize()

Against a local endpoint, a refused connection is reported as
CosmosEmulatorNotRunning instead of the raw transport error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from azure.cosmos import ContainerProxy, DatabaseProxy, PartitionKey

from cosmos_resources.changefeed.leases import LEASES_CONTAINER, LEASES_PARTITION_KEY_PATH
from cosmos_resources.config import CosmosOptions
from cosmos_resources.connections import ConnectionCache
from cosmos_resources.errors import emulator_diagnostic
from cosmos_resources.registry import ContainerRegistry

logger = logging.getLogger("cosmos-resources.init")


@dataclass(frozen=True)
class ContainerInitializer:
    container_name: str
    partition_key_path: str = "/id"
    # Paths excluded from indexing, e.g. ("/*",) for point-read-only containers.
    excluded_paths: tuple[str, ...] = ()

    def indexing_policy(self) -> dict[str, Any] | None:
        if not self.excluded_paths:
            return None
        return {
            "indexingMode": "consistent",
            "automatic": True,
            "excludedPaths": [{"path": p} for p in self.excluded_paths],
        }

    def initialize(self, database: DatabaseProxy) -> ContainerProxy:
        kwargs: dict[str, Any] = {
            "id": self.container_name,
            "partition_key": PartitionKey(path=self.partition_key_path),
        }
        policy = self.indexing_policy()
        if policy is not None:
            kwargs["indexing_policy"] = policy
        return database.create_container_if_not_exists(**kwargs)


LEASES_INITIALIZER = ContainerInitializer(LEASES_CONTAINER, LEASES_PARTITION_KEY_PATH, ("/*",))


class CosmosInitializer:
    def __init__(self, connections: ConnectionCache, registry: ContainerRegistry):
        self.connections = connections
        self.registry = registry
        self._groups: dict[int, tuple[CosmosOptions, list[ContainerInitializer]]] = {}

    def add(self, initializer: ContainerInitializer, options: CosmosOptions | None = None) -> None:
        """Schedule a container for the database of ``options`` (default options if None)."""
        options = options or self.registry.default_options
        self._groups.setdefault(id(options), (options, []))[1].append(initializer)

    async def initialize(self) -> None:
        for options, initializers in list(self._groups.values()):
            database = await asyncio.to_thread(self._create_database, options)
            await asyncio.gather(*(
                asyncio.to_thread(init.initialize, database) for init in initializers
            ))
            logger.info(
                "Initialised database %s (%d containers)", options.database_name, len(initializers),
            )

    def _create_database(self, options: CosmosOptions) -> DatabaseProxy:
        try:
            client = self.connections.get_client(options)
            return client.create_database_if_not_exists(
                id=options.database_name,
                offer_throughput=options.database_throughput,
            )
        except Exception as exc:
            rewritten = emulator_diagnostic(exc, options.account_endpoint)
            if rewritten is exc:
                raise
            raise rewritten from exc

"""
Container locator — registry + connection cache -> ContainerProxy.

Container proxies are cheap to derive from a client and are not cached
here; only the clients behind them are.
"""

from __future__ import annotations

from typing import Any

from azure.cosmos import ContainerProxy

from cosmos_resources.config import CosmosOptions
from cosmos_resources.connections import ConnectionCache
from cosmos_resources.registry import ContainerRegistry


class ContainerLocator:
    def __init__(self, registry: ContainerRegistry, connections: ConnectionCache):
        self.registry = registry
        self.connections = connections

    def locate(self, resource_type: Any, bulk: bool = False) -> ContainerProxy:
        """Container bound to ``resource_type``."""
        binding = self.registry.resolve(resource_type)
        return self._container(
            self.registry.options_for(binding),
            self.registry.database_for(binding),
            binding.container_name,
            bulk,
        )

    def locate_by_name(
        self,
        container_name: str,
        database_name: str | None = None,
        bulk: bool = False,
        options: CosmosOptions | None = None,
    ) -> ContainerProxy:
        """Ad-hoc access to a container that is not bound to a type."""
        options = options or self.registry.default_options
        return self._container(options, database_name or options.database_name, container_name, bulk)

    def locate_sibling(self, resource_type: Any, container_name: str, bulk: bool = False) -> ContainerProxy:
        """Named container in the same database/account as ``resource_type``."""
        binding = self.registry.resolve(resource_type)
        return self._container(
            self.registry.options_for(binding),
            self.registry.database_for(binding),
            container_name,
            bulk,
        )

    def _container(self, options: CosmosOptions, database_name: str, container_name: str, bulk: bool) -> ContainerProxy:
        client = self.connections.get_client(options, bulk)
        return client.get_database_client(database_name).get_container_client(container_name)

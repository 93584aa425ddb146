"""
cosmos_resources — typed Cosmos DB access for multi-container applications.

Resolves resource types to containers, caches CosmosClients, performs
optimistic-concurrency updates and dispatches change-feed batches.
"""

from __future__ import annotations

from cosmos_resources.autoincrement import AutoIncrementCounter, AutoIncrementProvider
from cosmos_resources.changefeed import (
    ChangeFeedListener,
    ChangeFeedProcessor,
    ChangeFeedService,
    ListenerState,
)
from cosmos_resources.client import CosmosResources
from cosmos_resources.config import ChangeFeedOptions, CosmosOptions
from cosmos_resources.connections import ConnectionCache
from cosmos_resources.errors import (
    AlreadyExists,
    AlreadyRunning,
    CosmosEmulatorNotRunning,
    CosmosResourceError,
    DuplicateRegistration,
    ErrorKind,
    InvalidDefault,
    InvalidResource,
    NotFound,
    UnknownResource,
    VersionConflict,
)
from cosmos_resources.initializer import LEASES_INITIALIZER, ContainerInitializer, CosmosInitializer
from cosmos_resources.locator import ContainerLocator
from cosmos_resources.registry import ContainerBinding, ContainerRegistry, KeyKind, ResourceKey
from cosmos_resources.resource import CosmosResource
from cosmos_resources.stores import (
    PRIORITY_HIGH,
    PRIORITY_LOW,
    CosmosBulkWriter,
    CosmosReader,
    CosmosWriter,
    PagedResult,
)

__version__ = "0.1.0"

__all__ = [
    "AlreadyExists",
    "AlreadyRunning",
    "AutoIncrementCounter",
    "AutoIncrementProvider",
    "ChangeFeedListener",
    "ChangeFeedOptions",
    "ChangeFeedProcessor",
    "ChangeFeedService",
    "ConnectionCache",
    "ContainerBinding",
    "ContainerInitializer",
    "ContainerLocator",
    "ContainerRegistry",
    "CosmosBulkWriter",
    "CosmosEmulatorNotRunning",
    "CosmosInitializer",
    "CosmosOptions",
    "CosmosReader",
    "CosmosResource",
    "CosmosResourceError",
    "CosmosResources",
    "CosmosWriter",
    "DuplicateRegistration",
    "ErrorKind",
    "InvalidDefault",
    "InvalidResource",
    "KeyKind",
    "LEASES_INITIALIZER",
    "ListenerState",
    "NotFound",
    "PRIORITY_HIGH",
    "PRIORITY_LOW",
    "PagedResult",
    "ResourceKey",
    "UnknownResource",
    "VersionConflict",
]

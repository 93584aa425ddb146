"""
Connection cache — one CosmosClient per (options, bulk mode).

CosmosClient construction probes the account endpoint, so clients are
created lazily on first demand and kept for the process lifetime.
Standard and bulk clients are cached separately: bulk clients trade
latency for a larger rate-limit retry budget.

close_all() disposes every cached client together at shutdown.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from azure.cosmos import CosmosClient

from cosmos_resources.config import CosmosOptions

logger = logging.getLogger("cosmos-resources.connections")

# Client settings used for high-throughput (bulk) execution.
BULK_CLIENT_SETTINGS: dict = {
    "retry_total": 20,
    "retry_backoff_max": 60,
    "user_agent_suffix": "cosmos-resources-bulk",
}

ClientFactory = Callable[[CosmosOptions, bool], CosmosClient]


def create_client(options: CosmosOptions, bulk: bool) -> CosmosClient:
    """Default factory: build a data-plane CosmosClient for ``options``."""
    settings = dict(BULK_CLIENT_SETTINGS) if bulk else {}
    return CosmosClient(url=options.account_endpoint, credential=options.auth, **settings)


class ConnectionCache:
    """Thread-safe get-or-create cache of CosmosClient handles.

    Options are compared by identity; the cache keeps a reference to each
    options object so its id cannot be reused while cached.
    """

    def __init__(self, client_factory: ClientFactory | None = None):
        self._factory = client_factory or create_client
        self._clients: dict[tuple[int, bool], tuple[CosmosOptions, CosmosClient]] = {}
        self._lock = threading.Lock()

    def get_client(self, options: CosmosOptions, bulk: bool = False) -> CosmosClient:
        key = (id(options), bulk)
        entry = self._clients.get(key)
        if entry is not None:
            return entry[1]

        with self._lock:
            entry = self._clients.get(key)
            if entry is None:
                client = self._factory(options, bulk)
                entry = (options, client)
                self._clients[key] = entry
                logger.info(
                    "Created %s CosmosClient for %s (db=%s)",
                    "bulk" if bulk else "standard",
                    options.account_endpoint, options.database_name,
                )
        return entry[1]

    def __len__(self) -> int:
        return len(self._clients)

    def close_all(self) -> None:
        """Close every cached client (called once during shutdown)."""
        with self._lock:
            entries = list(self._clients.values())
            self._clients.clear()

        errors: list[Exception] = []
        for options, client in entries:
            try:
                client.close()
            except Exception as exc:
                logger.warning("Failed to close CosmosClient for %s: %s", options.account_endpoint, exc)
                errors.append(exc)
        if errors:
            raise ExceptionGroup("Failed to close one or more CosmosClients", errors)

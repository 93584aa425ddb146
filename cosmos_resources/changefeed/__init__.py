"""
Change-feed listeners with per-partition fan-out and lease checkpoints.
"""

from __future__ import annotations

from cosmos_resources.changefeed.leases import LEASES_CONTAINER, LeaseDocument, LeaseStore
from cosmos_resources.changefeed.listener import (
    ChangeFeedListener,
    ChangeFeedService,
    ListenerState,
    group_by_partition,
)
from cosmos_resources.changefeed.processor import ChangeFeedProcessor
from cosmos_resources.changefeed.source import CosmosChangeFeedSource

__all__ = [
    "LEASES_CONTAINER",
    "ChangeFeedListener",
    "ChangeFeedProcessor",
    "ChangeFeedService",
    "CosmosChangeFeedSource",
    "LeaseDocument",
    "LeaseStore",
    "ListenerState",
    "group_by_partition",
]

"""
Lease store — durable change-feed checkpoints.

One LeaseDocument per listener lives in the "leases" container of the
watched resource's database (partition key path /id).  The document id
is the listener's lease token; it holds the last processed feed
continuation and the instance that wrote it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from azure.cosmos import ContainerProxy
from pydantic import Field

from cosmos_resources.resource import CosmosResource
from cosmos_resources.stores import CosmosReader, CosmosWriter

logger = logging.getLogger("cosmos-resources.changefeed")

LEASES_CONTAINER = "leases"
LEASES_PARTITION_KEY_PATH = "/id"
CHECKPOINT_RETRIES = 3


class LeaseDocument(CosmosResource):
    lease_token: str = Field(alias="id")
    continuation: str | None = None
    owner: str | None = None
    updated_at: str | None = None

    @property
    def document_id(self) -> str:
        return self.lease_token

    @property
    def partition_key(self) -> str:
        return self.lease_token


class LeaseStore:
    def __init__(self, container: ContainerProxy, lease_token: str, owner: str):
        self.lease_token = lease_token
        self.owner = owner
        self._reader: CosmosReader[LeaseDocument] = CosmosReader(container, LeaseDocument)
        self._writer: CosmosWriter[LeaseDocument] = CosmosWriter(container, self._reader)

    async def load(self) -> str | None:
        """Last checkpointed continuation, or None if the listener never ran."""
        lease = await self._reader.find(self.lease_token, self.lease_token)
        if lease is None:
            logger.info("No lease for %s, starting from the configured start point", self.lease_token)
            return None
        logger.info("Resuming %s from lease written by %s", self.lease_token, lease.owner)
        return lease.continuation

    async def checkpoint(self, continuation: str | None) -> LeaseDocument:
        def _advance(lease: LeaseDocument) -> None:
            lease.continuation = continuation
            lease.owner = self.owner
            lease.updated_at = datetime.now(timezone.utc).isoformat()

        lease = await self._writer.update_or_create(
            lambda: LeaseDocument(lease_token=self.lease_token),
            _advance,
            max_retries=CHECKPOINT_RETRIES,
        )
        logger.debug("Checkpointed %s at %s", self.lease_token, continuation)
        return lease

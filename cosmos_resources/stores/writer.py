"""
CosmosWriter — create/replace/patch/delete plus optimistic-concurrency updates.

update() and update_or_create() implement read-modify-write against the
document's ETag.  A replace that loses the race fails with
VersionConflict; the loop re-reads and tries again until the retry
budget is spent.  update_or_create() also retries AlreadyExists so two
callers racing to create the same document converge on one winner.

The loops give optimistic concurrency, not mutual exclusion.  Retrying
AlreadyExists assumes the document is not deleted concurrently with its
creation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Sequence, Union

from azure.core import MatchConditions
from azure.cosmos import ContainerProxy

from cosmos_resources.config import CosmosOptions
from cosmos_resources.errors import (
    CosmosResourceError,
    ErrorKind,
    InvalidDefault,
    InvalidResource,
    NotFound,
    classify,
)
from cosmos_resources.resource import R, from_document, has_identity, to_document
from cosmos_resources.stores.base import call_store, check_cancelled, maybe_await, request_options
from cosmos_resources.stores.reader import CosmosReader

logger = logging.getLogger("cosmos-resources.writer")

PatchOperations = Sequence[dict[str, Any]]
Mutation = Callable[[R], Union[None, R, Awaitable[None], Awaitable[R]]]

_UPDATE_RETRYABLE = frozenset({ErrorKind.VERSION_CONFLICT})
_UPSERT_RETRYABLE = frozenset({ErrorKind.VERSION_CONFLICT, ErrorKind.ALREADY_EXISTS})


async def _apply(mutate: Mutation, document: R) -> R:
    """Run a sync or async mutation; a returned resource replaces the input.

    A replacement inherits the ETag of the document it was derived from, so
    the write stays conditional on the version that was read.
    """
    result = await maybe_await(mutate(document))
    if result is None or result is document:
        return document
    result.etag = document.etag
    return result


def _require_identity(resource: Any) -> None:
    if not has_identity(resource):
        raise InvalidResource(
            f"{type(resource).__name__} needs document_id and partition_key to be set."
        )


class CosmosWriter(Generic[R]):
    def __init__(
        self,
        container: ContainerProxy,
        reader: CosmosReader[R],
        options: CosmosOptions | None = None,
    ):
        self.container = container
        self.reader = reader
        self.resource_type = reader.resource_type
        self.priority = reader.priority
        self._serializer_options = options.serializer_options if options else {}

    def _body(self, resource: R) -> dict[str, Any]:
        _require_identity(resource)
        return to_document(resource, self._serializer_options)

    def _load(self, document: dict[str, Any]) -> R:
        return from_document(self.resource_type, document)

    # -- single-shot writes --------------------------------------------------

    async def create(self, resource: R) -> R:
        """Create a new document; raises AlreadyExists on id + partition collision."""
        document = await call_store(
            self.container.create_item, body=self._body(resource), **request_options(self.priority),
        )
        return self._load(document)

    async def write(self, resource: R) -> R:
        """Create or overwrite a document without any concurrency check."""
        document = await call_store(
            self.container.upsert_item, body=self._body(resource), **request_options(self.priority),
        )
        return self._load(document)

    async def replace(self, resource: R) -> R:
        """Replace an existing document.

        When the resource carries an ETag the store rejects the write with
        VersionConflict unless it still matches.  Raises NotFound if the
        document is gone.
        """
        body = self._body(resource)
        kwargs: dict[str, Any] = {
            "item": resource.document_id, "body": body, **request_options(self.priority),
        }
        if resource.etag is not None:
            kwargs["etag"] = resource.etag
            kwargs["match_condition"] = MatchConditions.IfNotModified
        document = await call_store(self.container.replace_item, **kwargs)
        return self._load(document)

    async def delete(self, document_id: str, partition_key: str) -> None:
        """Delete a document; raises NotFound if it does not exist."""
        await call_store(
            self.container.delete_item, item=document_id, partition_key=partition_key,
            **request_options(self.priority),
        )

    async def try_delete(self, document_id: str, partition_key: str) -> bool:
        try:
            await self.delete(document_id, partition_key)
        except NotFound:
            return False
        return True

    async def delete_partition(self, partition_key: str) -> None:
        """Delete every document in a logical partition.

        The service runs the deletion as a background operation; documents
        may remain visible for a short while after this returns.
        """
        await call_store(
            self.container.delete_all_items_by_partition_key, partition_key=partition_key,
            **request_options(self.priority),
        )
        logger.info("Deleting partition %s of %s", partition_key, self.container.id)

    # -- partial updates -----------------------------------------------------

    async def patch(
        self,
        document_id: str,
        partition_key: str,
        operations: PatchOperations,
        filter_predicate: str | None = None,
    ) -> R:
        """Apply patch operations server-side and return the patched resource.

        ``operations`` use the service format, e.g.
        ``{"op": "incr", "path": "/total", "value": 1}``.  With a
        ``filter_predicate`` such as ``"FROM c WHERE c.status = 'new'"`` the
        patch fails with VersionConflict unless the document matches.
        """
        document = await self._patch(document_id, partition_key, operations, filter_predicate)
        return self._load(document)

    async def patch_with_no_response(
        self,
        document_id: str,
        partition_key: str,
        operations: PatchOperations,
        filter_predicate: str | None = None,
    ) -> None:
        await self._patch(
            document_id, partition_key, operations, filter_predicate, no_response=True,
        )

    async def _patch(
        self,
        document_id: str,
        partition_key: str,
        operations: PatchOperations,
        filter_predicate: str | None,
        **kwargs: Any,
    ) -> Any:
        if filter_predicate:
            kwargs["filter_predicate"] = filter_predicate
        return await call_store(
            self.container.patch_item,
            item=document_id,
            partition_key=partition_key,
            patch_operations=list(operations),
            **request_options(self.priority),
            **kwargs,
        )

    # -- optimistic concurrency ----------------------------------------------

    async def update(
        self,
        document_id: str,
        partition_key: str,
        mutate: Mutation,
        max_retries: int = 0,
        *,
        cancel: asyncio.Event | None = None,
    ) -> R:
        """Read, mutate and replace a document, retrying on VersionConflict.

        ``max_retries`` of 0 means a single attempt.  Any error other than
        VersionConflict propagates immediately.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        retries_left = max_retries
        while True:
            check_cancelled(cancel)
            document = await self.reader.read(document_id, partition_key)
            document = await _apply(mutate, document)
            try:
                return await self.replace(document)
            except CosmosResourceError as exc:
                if classify(exc) not in _UPDATE_RETRYABLE or retries_left <= 0:
                    raise
                retries_left -= 1
                logger.debug(
                    "Version conflict updating %s/%s, retrying (%d retries left)",
                    partition_key, document_id, retries_left,
                )

    async def update_or_create(
        self,
        make_default: Callable[[], R],
        mutate: Mutation,
        max_retries: int = 0,
        *,
        cancel: asyncio.Event | None = None,
    ) -> R:
        """Mutate an existing document, or create it from ``make_default()``.

        The default must carry a document_id and partition_key (InvalidDefault
        otherwise); it is rebuilt on every attempt.  VersionConflict and
        AlreadyExists both consume one retry.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        retries_left = max_retries
        while True:
            check_cancelled(cancel)
            default = make_default()
            if not has_identity(default):
                raise InvalidDefault(
                    "Default document needs document_id and partition_key to be set."
                )

            existing = await self.reader.find(default.document_id, default.partition_key)
            document = await _apply(mutate, existing if existing is not None else default)
            try:
                if document.etag is None:
                    return await self.create(document)
                return await self.replace(document)
            except CosmosResourceError as exc:
                if classify(exc) not in _UPSERT_RETRYABLE or retries_left <= 0:
                    raise
                retries_left -= 1
                logger.debug(
                    "%s on %s/%s, retrying (%d retries left)",
                    classify(exc).value, default.partition_key, default.document_id, retries_left,
                )

"""
Change-feed listener — polls a container's change feed and fans batches
out to a ChangeFeedProcessor.

Lifecycle:  STOPPED --start()--> RUNNING --stop()--> STOPPED

Each batch is grouped by partition key (exact string match) and the
groups are processed in chunks of at most ``max_degree_of_parallelism``
concurrent processor calls.  A chunk finishes before the next starts and
a batch finishes before the next page is requested, so the feed is never
drained faster than the processor keeps up.

Processor failures are reported through processor.error(lease_token, exc)
and are not retried here.  The lease is checkpointed after every batch.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Generic, Iterator, Sequence

from cosmos_resources.changefeed.leases import LeaseStore
from cosmos_resources.changefeed.processor import ChangeFeedProcessor
from cosmos_resources.changefeed.source import CosmosChangeFeedSource
from cosmos_resources.config import ChangeFeedOptions
from cosmos_resources.errors import AlreadyRunning
from cosmos_resources.resource import R, from_document
from cosmos_resources.stores.base import maybe_await

logger = logging.getLogger("cosmos-resources.changefeed")


class ListenerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def group_by_partition(changes: Sequence[R]) -> dict[str, list[R]]:
    """Group changes by partition key, in order of first appearance."""
    groups: dict[str, list[R]] = {}
    for change in changes:
        groups.setdefault(change.partition_key, []).append(change)
    return groups


class ChangeFeedListener(Generic[R]):
    def __init__(
        self,
        resource_type: type[R],
        source: CosmosChangeFeedSource,
        leases: LeaseStore,
        processor: ChangeFeedProcessor[R],
        options: ChangeFeedOptions | None = None,
    ):
        self.resource_type = resource_type
        self.options = options or ChangeFeedOptions()
        self._source = source
        self._leases = leases
        self._processor = processor
        self._state = ListenerState.STOPPED
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()
        self._continuation: str | None = None

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def lease_token(self) -> str:
        return self._leases.lease_token

    async def start(self) -> None:
        """Resume from the stored lease (or the start point) and begin polling."""
        if self._state is ListenerState.RUNNING:
            raise AlreadyRunning(f"Change feed listener {self.lease_token} is already running.")

        self._state = ListenerState.RUNNING
        try:
            self._continuation = await self._leases.load()
        except BaseException:
            self._state = ListenerState.STOPPED
            raise

        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=f"changefeed:{self.lease_token}")
        logger.info(
            "Change feed listener %s started (parallelism=%d, max_items=%d)",
            self.lease_token, self.options.max_degree_of_parallelism, self.options.max_item_count,
        )

    async def stop(self) -> None:
        """Stop polling; waits for the batch in flight to finish. No-op when stopped.

        Processors see the stop request through the ``cancel`` event passed
        to process().
        """
        task, self._task = self._task, None
        if self._state is ListenerState.STOPPED and task is None:
            return
        self._stopping.set()
        try:
            if task is not None and not task.done():
                await task
            elif task is not None and not task.cancelled() and task.exception() is not None:
                logger.warning(
                    "Change feed listener %s had already failed: %s", self.lease_token, task.exception(),
                )
        finally:
            self._state = ListenerState.STOPPED
            logger.info("Change feed listener %s stopped", self.lease_token)

    async def _run(self) -> None:
        try:
            await self._poll()
        finally:
            self._state = ListenerState.STOPPED

    async def _poll(self) -> None:
        while not self._stopping.is_set():
            try:
                documents, continuation = await self._source.read(self._continuation)
                if not documents:
                    self._continuation = continuation
                    await self._idle()
                    continue

                changes = [from_document(self.resource_type, d) for d in documents]
                logger.debug("Change feed %s delivered %d changes", self.lease_token, len(changes))
                await self.dispatch(changes)

                self._continuation = continuation
                await self._leases.checkpoint(continuation)
            except Exception as exc:
                logger.warning("Change feed %s poll failed: %s", self.lease_token, exc)
                await self._report(exc)
                await self._idle()

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=self.options.feed_poll_delay)
        except TimeoutError:
            pass

    async def dispatch(self, changes: Sequence[R]) -> None:
        """Hand one feed batch to the processor, chunked by parallelism."""
        groups = list(group_by_partition(changes).items())
        for chunk in chunked(groups, self.options.max_degree_of_parallelism):
            results = await asyncio.gather(
                *(self._processor.process(key, items, cancel=self._stopping) for key, items in chunk),
                return_exceptions=True,
            )
            for (key, _), result in zip(chunk, results):
                if isinstance(result, (Exception, asyncio.CancelledError)):
                    logger.warning(
                        "Processor failed for partition %s on %s: %s", key, self.lease_token, result,
                    )
                    await self._report(result)
                elif isinstance(result, BaseException):
                    raise result

    async def _report(self, exc: BaseException) -> None:
        try:
            await maybe_await(self._processor.error(self.lease_token, exc))
        except Exception:
            logger.exception("Error handler of %s raised", self.lease_token)


class ChangeFeedService:
    """Starts and stops a set of listeners together."""

    def __init__(self, listeners: Sequence[ChangeFeedListener] = ()):
        self.listeners = list(listeners)

    def add(self, listener: ChangeFeedListener) -> None:
        self.listeners.append(listener)

    async def start(self) -> None:
        await asyncio.gather(*(listener.start() for listener in self.listeners))

    async def stop(self) -> None:
        await asyncio.gather(*(listener.stop() for listener in self.listeners))

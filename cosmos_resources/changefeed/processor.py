"""
ChangeFeedProcessor — the application side of a change-feed listener.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Protocol, Sequence, TypeVar, runtime_checkable

T_contra = TypeVar("T_contra", contravariant=True)


@runtime_checkable
class ChangeFeedProcessor(Protocol[T_contra]):
    """Handles the changes of one partition at a time.

    process() is invoked once per partition key present in a feed batch,
    possibly concurrently for different partitions.  ``cancel`` is set once
    the listener is asked to stop; long-running processors should check it
    and return early.  The listener still waits for process() to finish.

    Failures, including a processor-raised CancelledError, are passed to
    error() with the listener's lease token; they are never retried by the
    listener.
    """

    def process(
        self,
        partition_key: str,
        changes: Sequence[T_contra],
        cancel: asyncio.Event | None = None,
    ) -> Awaitable[None]:
        ...

    def error(self, lease_token: str, exception: BaseException) -> Awaitable[None] | None:
        ...

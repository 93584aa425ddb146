"""
Shared plumbing for the Cosmos readers and writers.

Wraps the Cosmos SDK's synchronous methods with asyncio.to_thread() for
non-blocking access and translates the SDK's 404/409/412 errors into
the package taxonomy.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, TypeVar

from azure.cosmos.exceptions import CosmosHttpResponseError

from cosmos_resources.errors import translate

T = TypeVar("T")


async def call_store(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking SDK call in a worker thread."""
    try:
        return await asyncio.to_thread(fn, *args, **kwargs)
    except CosmosHttpResponseError as exc:
        translated = translate(exc)
        if translated is exc:
            raise
        raise translated from exc


# Request priority levels understood by the service (priority-based execution).
PRIORITY_HIGH = "High"
PRIORITY_LOW = "Low"


def request_options(priority: str | None) -> dict[str, Any]:
    """Per-request keyword arguments shared by every SDK call of a store."""
    return {"priority": priority} if priority else {}


def check_cancelled(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise asyncio.CancelledError()


def is_cancelled(cancel: asyncio.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value

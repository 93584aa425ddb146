"""
Auto-increment counters stored as one document per counter name.

Concurrent callers converge through CosmosWriter.update_or_create(), so
each call observes a distinct value.
"""

from __future__ import annotations

from pydantic import Field

from cosmos_resources.initializer import ContainerInitializer
from cosmos_resources.resource import CosmosResource
from cosmos_resources.stores import CosmosWriter

AUTO_INCREMENT_CONTAINER = "auto-increment-counters"
AUTO_INCREMENT_INITIALIZER = ContainerInitializer(AUTO_INCREMENT_CONTAINER, "/id", ("/*",))
AUTO_INCREMENT_RETRIES = 5


class AutoIncrementCounter(CosmosResource):
    counter_name: str = Field(alias="id")
    count: int = 0

    @property
    def document_id(self) -> str:
        return self.counter_name

    @property
    def partition_key(self) -> str:
        return self.counter_name


class AutoIncrementProvider:
    def __init__(self, writer: CosmosWriter[AutoIncrementCounter]):
        self._writer = writer

    async def get_next(self, counter_name: str) -> int:
        def _increment(counter: AutoIncrementCounter) -> None:
            counter.count += 1

        counter = await self._writer.update_or_create(
            lambda: AutoIncrementCounter(counter_name=counter_name),
            _increment,
            max_retries=AUTO_INCREMENT_RETRIES,
        )
        return counter.count

"""
AutoIncrementProvider — sequential and concurrent counters.
"""

import asyncio

import pytest

from cosmos_resources import AutoIncrementCounter, CosmosResources, UnknownResource
from cosmos_resources.autoincrement import AUTO_INCREMENT_CONTAINER
from tests.fakes import FakeCosmosAccount

pytestmark = pytest.mark.asyncio


@pytest.fixture
def counters(resources: CosmosResources) -> CosmosResources:
    resources.register(AutoIncrementCounter, AUTO_INCREMENT_CONTAINER)
    return resources


async def test_sequential_values(counters: CosmosResources, account: FakeCosmosAccount):
    provider = counters.auto_increment()

    assert [await provider.get_next("invoices") for _ in range(3)] == [1, 2, 3]
    assert account.container("appdb", AUTO_INCREMENT_CONTAINER).get("invoices", "invoices")["count"] == 3


async def test_counters_are_independent(counters: CosmosResources):
    provider = counters.auto_increment()

    await provider.get_next("invoices")
    await provider.get_next("invoices")

    assert await provider.get_next("receipts") == 1


async def test_concurrent_callers_get_distinct_values(counters: CosmosResources):
    provider = counters.auto_increment()

    values = await asyncio.gather(*(provider.get_next("invoices") for _ in range(4)))

    assert sorted(values) == [1, 2, 3, 4]


async def test_requires_registration(resources: CosmosResources):
    with pytest.raises(UnknownResource):
        resources.auto_increment()

"""
Shared fixtures: test resource types, options and a CosmosResources
instance wired to the in-memory fake account.
"""

from __future__ import annotations

from typing import Generic, TypeVar

import pytest

from cosmos_resources import CosmosOptions, CosmosResource, CosmosResources
from tests.fakes import FakeCosmosAccount

T = TypeVar("T")


class Order(CosmosResource):
    id: str
    pk: str
    status: str = "new"
    total: int = 0

    @property
    def document_id(self) -> str:
        return self.id

    @property
    def partition_key(self) -> str:
        return self.pk


class Customer(CosmosResource):
    id: str
    pk: str
    name: str = ""

    @property
    def document_id(self) -> str:
        return self.id

    @property
    def partition_key(self) -> str:
        return self.pk


class Envelope(CosmosResource, Generic[T]):
    id: str
    pk: str
    payload: T | None = None

    @property
    def document_id(self) -> str:
        return self.id

    @property
    def partition_key(self) -> str:
        return self.pk


@pytest.fixture
def options() -> CosmosOptions:
    return CosmosOptions(
        account_endpoint="https://example.documents.azure.com:443/",
        account_key="secret",
        database_name="appdb",
    )


@pytest.fixture
def account() -> FakeCosmosAccount:
    return FakeCosmosAccount()


@pytest.fixture
def resources(options: CosmosOptions, account: FakeCosmosAccount) -> CosmosResources:
    res = CosmosResources(options, client_factory=account.client_factory)
    res.register(Order, "orders")
    yield res
    res.close()


@pytest.fixture
def orders(account: FakeCosmosAccount):
    return account.container("appdb", "orders")

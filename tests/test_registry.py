"""
Container registry — single registration, generic families, resolution.
"""

import threading

import pytest

from cosmos_resources import (
    ContainerRegistry,
    CosmosOptions,
    DuplicateRegistration,
    KeyKind,
    ResourceKey,
    UnknownResource,
)
from tests.conftest import Customer, Envelope, Order


@pytest.fixture
def registry(options: CosmosOptions) -> ContainerRegistry:
    return ContainerRegistry(options)


def test_resolve_returns_registered_binding(registry: ContainerRegistry):
    registry.register(Order, "c1", "db1")

    binding = registry.resolve(Order)
    assert binding.container_name == "c1"
    assert binding.database_name == "db1"
    assert binding.key == ResourceKey.of(Order)


def test_resolve_unregistered_type_fails(registry: ContainerRegistry):
    registry.register(Order, "orders")
    with pytest.raises(UnknownResource):
        registry.resolve(Customer)


def test_register_same_type_twice_fails(registry: ContainerRegistry):
    registry.register(Order, "orders")
    with pytest.raises(DuplicateRegistration):
        registry.register(Order, "other")
    assert registry.resolve(Order).container_name == "orders"


def test_family_resolves_every_instantiation(registry: ContainerRegistry):
    registry.register(ResourceKey.family(Envelope), "envelopes")

    assert registry.resolve(Envelope[int]).container_name == "envelopes"
    assert registry.resolve(Envelope[str]).container_name == "envelopes"


def test_exact_match_wins_over_family(registry: ContainerRegistry):
    registry.register(Envelope[int], "int-envelopes")
    with pytest.raises(DuplicateRegistration):
        registry.register(ResourceKey.family(Envelope), "envelopes")

    assert registry.resolve(Envelope[int]).container_name == "int-envelopes"
    with pytest.raises(UnknownResource):
        registry.resolve(Envelope[str])


def test_instantiation_after_family_fails(registry: ContainerRegistry):
    registry.register(ResourceKey.family(Envelope), "envelopes")
    with pytest.raises(DuplicateRegistration):
        registry.register(Envelope[int], "int-envelopes")


def test_family_registered_twice_fails(registry: ContainerRegistry):
    registry.register(ResourceKey.family(Envelope), "envelopes")
    with pytest.raises(DuplicateRegistration):
        registry.register(ResourceKey.family(Envelope), "again")


def test_distinct_instantiations_can_be_bound_separately(registry: ContainerRegistry):
    registry.register(Envelope[int], "ints")
    registry.register(Envelope[str], "strs")

    assert registry.resolve(Envelope[int]).container_name == "ints"
    assert registry.resolve(Envelope[str]).container_name == "strs"


def test_resource_key_variants():
    concrete = ResourceKey.of(Envelope[int])
    assert concrete.kind is KeyKind.CONCRETE
    assert concrete.family_key == ResourceKey.family(Envelope)

    plain = ResourceKey.of(Order)
    assert plain.kind is KeyKind.CONCRETE
    assert plain.family_key is None

    assert ResourceKey.family(Envelope).kind is KeyKind.FAMILY


def test_typing_alias_belongs_to_its_origin(registry: ContainerRegistry):
    registry.register(ResourceKey.family(list), "lists")
    assert registry.resolve(list[int]).container_name == "lists"


def test_options_fall_back_to_default(registry: ContainerRegistry, options: CosmosOptions):
    other = CosmosOptions(account_endpoint="https://other:443/", account_key="k", database_name="otherdb")
    registry.register(Order, "orders")
    registry.register(Customer, "customers", options=other)

    assert registry.options_for(registry.resolve(Order)) is options
    assert registry.options_for(registry.resolve(Customer)) is other
    assert registry.database_for(registry.resolve(Order)) == "appdb"
    assert registry.database_for(registry.resolve(Customer)) == "otherdb"
    assert registry.all_options() == [options, other]


def test_empty_container_name_rejected(registry: ContainerRegistry):
    with pytest.raises(ValueError):
        registry.register(Order, "")


def test_concurrent_duplicate_registration_has_one_winner(registry: ContainerRegistry):
    outcomes: list[str] = []
    barrier = threading.Barrier(8)

    def _register(i: int) -> None:
        barrier.wait()
        try:
            registry.register(Order, f"c{i}")
            outcomes.append("ok")
        except DuplicateRegistration:
            outcomes.append("dup")

    threads = [threading.Thread(target=_register, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("dup") == 7

"""
Change-feed listener — partition fan-out, error channel, lifecycle and
lease checkpoints.
"""

import asyncio

import pytest

from cosmos_resources import (
    AlreadyRunning,
    ChangeFeedOptions,
    ChangeFeedService,
    CosmosResources,
    ListenerState,
)
from cosmos_resources.changefeed import LeaseDocument, group_by_partition
from tests.conftest import Order
from tests.fakes import FakeContainer, FakeCosmosAccount

pytestmark = pytest.mark.asyncio

FAST = dict(feed_poll_delay=0.01)


class RecordingProcessor:
    def __init__(self, fail_on: set[str] = frozenset(), delay: float = 0.01, cancel_on: set[str] = frozenset()):
        self.fail_on = set(fail_on)
        self.cancel_on = set(cancel_on)
        self.delay = delay
        self.started: list[str] = []
        self.calls: list[tuple[str, list[str]]] = []
        self.errors: list[tuple[str, BaseException]] = []
        self.cancel_events: list[asyncio.Event | None] = []
        self.in_flight = 0
        self.peak = 0

    async def process(self, partition_key, changes, cancel=None):
        self.started.append(partition_key)
        self.cancel_events.append(cancel)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if partition_key in self.fail_on:
                raise RuntimeError(f"cannot process {partition_key}")
            if partition_key in self.cancel_on:
                raise asyncio.CancelledError()
            self.calls.append((partition_key, [c.id for c in changes]))
        finally:
            self.in_flight -= 1

    async def error(self, lease_token, exception):
        self.errors.append((lease_token, exception))

    @property
    def seen_ids(self) -> list[str]:
        return [i for _, ids in self.calls for i in ids]


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(_poll(), timeout)


def _orders(*pairs: tuple[str, str]) -> list[Order]:
    return [Order(id=i, pk=pk) for i, pk in pairs]


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


async def test_fan_out_one_call_per_partition_in_chunks(resources: CosmosResources):
    processor = RecordingProcessor()
    listener = resources.listener(Order, processor, ChangeFeedOptions(max_degree_of_parallelism=2))
    batch = _orders(("a1", "A"), ("b1", "B"), ("a2", "A"), ("c1", "C"), ("b2", "B"), ("b3", "B"))

    await listener.dispatch(batch)

    assert sorted(processor.calls) == [
        ("A", ["a1", "a2"]),
        ("B", ["b1", "b2", "b3"]),
        ("C", ["c1"]),
    ]
    assert processor.peak == 2
    # C belongs to the second chunk and starts only after A and B finished.
    assert {pk for pk, _ in processor.calls[:2]} == {"A", "B"}
    assert processor.started[-1] == "C"


async def test_parallelism_of_one_is_sequential(resources: CosmosResources):
    processor = RecordingProcessor()
    listener = resources.listener(Order, processor)

    await listener.dispatch(_orders(("a1", "A"), ("b1", "B"), ("c1", "C")))

    assert processor.peak == 1
    assert [pk for pk, _ in processor.calls] == ["A", "B", "C"]


async def test_grouping_is_ordinal():
    changes = _orders(("1", "key"), ("2", "KEY"), ("3", "caf\u00e9"), ("4", "cafe\u0301"), ("5", "key"))

    groups = group_by_partition(changes)

    assert list(groups) == ["key", "KEY", "caf\u00e9", "cafe\u0301"]
    assert [c.id for c in groups["key"]] == ["1", "5"]


async def test_processor_failure_is_reported_not_retried(resources: CosmosResources):
    processor = RecordingProcessor(fail_on={"B"})
    listener = resources.listener(Order, processor, ChangeFeedOptions(max_degree_of_parallelism=3))

    await listener.dispatch(_orders(("a1", "A"), ("b1", "B"), ("c1", "C")))

    assert sorted(pk for pk, _ in processor.calls) == ["A", "C"]
    assert processor.started.count("B") == 1
    assert len(processor.errors) == 1
    token, exc = processor.errors[0]
    assert token == listener.lease_token == "orders"
    assert "cannot process B" in str(exc)


async def test_failing_error_handler_does_not_break_dispatch(resources: CosmosResources):
    processor = RecordingProcessor(fail_on={"A"})

    async def _broken_handler(lease_token, exception):
        raise RuntimeError("handler down")

    processor.error = _broken_handler
    listener = resources.listener(Order, processor)

    await listener.dispatch(_orders(("a1", "A"), ("b1", "B")))

    assert [pk for pk, _ in processor.calls] == ["B"]


async def test_processor_cancellation_is_reported_as_failure(resources: CosmosResources):
    processor = RecordingProcessor(cancel_on={"B"})
    listener = resources.listener(Order, processor, ChangeFeedOptions(max_degree_of_parallelism=3))

    await listener.dispatch(_orders(("a1", "A"), ("b1", "B"), ("c1", "C")))

    assert sorted(pk for pk, _ in processor.calls) == ["A", "C"]
    assert len(processor.errors) == 1
    token, exc = processor.errors[0]
    assert token == "orders"
    assert isinstance(exc, asyncio.CancelledError)


async def test_processor_receives_stop_signal(resources: CosmosResources):
    processor = RecordingProcessor()
    listener = resources.listener(Order, processor)

    await listener.dispatch(_orders(("a1", "A"), ("b1", "B")))

    assert len(processor.cancel_events) == 2
    assert all(isinstance(e, asyncio.Event) and not e.is_set() for e in processor.cancel_events)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def test_start_stop_state_machine(resources: CosmosResources):
    listener = resources.listener(Order, RecordingProcessor(), ChangeFeedOptions(**FAST))
    assert listener.state is ListenerState.STOPPED

    await listener.start()
    assert listener.state is ListenerState.RUNNING
    with pytest.raises(AlreadyRunning):
        await listener.start()

    await listener.stop()
    assert listener.state is ListenerState.STOPPED
    await listener.stop()
    assert listener.state is ListenerState.STOPPED


async def test_listener_delivers_from_beginning_and_checkpoints(
    resources: CosmosResources, orders: FakeContainer, account: FakeCosmosAccount,
):
    orders.seed(*({"id": f"o{i}", "pk": f"c{i % 2}"} for i in range(4)))
    processor = RecordingProcessor()
    listener = resources.listener(Order, processor, ChangeFeedOptions(max_degree_of_parallelism=2, **FAST))

    await listener.start()
    await _wait_for(lambda: len(processor.seen_ids) == 4)
    await listener.stop()

    assert sorted(processor.seen_ids) == ["o0", "o1", "o2", "o3"]
    lease = account.container("appdb", "leases").get("orders", "orders")
    assert lease["continuation"] == "4"
    assert lease["owner"]


async def test_restart_resumes_from_lease(resources: CosmosResources, orders: FakeContainer):
    orders.seed({"id": "o1", "pk": "c1"}, {"id": "o2", "pk": "c1"})
    first = RecordingProcessor()
    listener = resources.listener(Order, first, ChangeFeedOptions(**FAST))
    await listener.start()
    await _wait_for(lambda: len(first.seen_ids) == 2)
    await listener.stop()

    orders.seed({"id": "o3", "pk": "c2"})
    second = RecordingProcessor()
    restarted = resources.listener(Order, second, ChangeFeedOptions(**FAST))
    await restarted.start()
    await _wait_for(lambda: len(second.seen_ids) == 1)
    await restarted.stop()

    assert second.seen_ids == ["o3"]


async def test_processor_name_keys_the_lease(resources: CosmosResources, orders: FakeContainer, account: FakeCosmosAccount):
    orders.seed({"id": "o1", "pk": "c1"})
    processor = RecordingProcessor()
    listener = resources.listener(Order, processor, ChangeFeedOptions(**FAST), processor_name="billing")

    await listener.start()
    await _wait_for(lambda: processor.seen_ids == ["o1"])
    await listener.stop()

    leases = account.container("appdb", "leases")
    assert leases.get("billing", "billing") is not None
    assert leases.get("orders", "orders") is None


async def test_checkpoint_advances_past_failed_batch(resources: CosmosResources, orders: FakeContainer, account: FakeCosmosAccount):
    orders.seed({"id": "o1", "pk": "bad"})
    processor = RecordingProcessor(fail_on={"bad"})
    listener = resources.listener(Order, processor, ChangeFeedOptions(**FAST))

    await listener.start()
    await _wait_for(lambda: len(processor.errors) == 1)
    await _wait_for(lambda: account.container("appdb", "leases").get("orders", "orders") is not None)
    await listener.stop()

    assert processor.started == ["bad"]
    assert account.container("appdb", "leases").get("orders", "orders")["continuation"] == "1"


async def test_poll_failure_is_reported_and_polling_continues(resources: CosmosResources, orders: FakeContainer):
    orders.seed({"id": "o1", "pk": "c1"})
    real_feed = orders.query_items_change_feed
    failures = []

    def _flaky(**kwargs):
        if not failures:
            failures.append(1)
            raise RuntimeError("feed unavailable")
        return real_feed(**kwargs)

    orders.query_items_change_feed = _flaky
    processor = RecordingProcessor()
    listener = resources.listener(Order, processor, ChangeFeedOptions(**FAST))

    await listener.start()
    await _wait_for(lambda: processor.seen_ids == ["o1"])
    await listener.stop()

    assert len(processor.errors) == 1
    assert "feed unavailable" in str(processor.errors[0][1])


async def test_stop_waits_for_batch_in_flight(resources: CosmosResources, orders: FakeContainer):
    orders.seed({"id": "o1", "pk": "c1"})
    processor = RecordingProcessor(delay=0.2)
    listener = resources.listener(Order, processor, ChangeFeedOptions(**FAST))

    await listener.start()
    await _wait_for(lambda: processor.started == ["c1"])
    await listener.stop()

    assert processor.seen_ids == ["o1"]


async def test_lease_document_shape():
    lease = LeaseDocument(lease_token="orders", continuation="7")

    assert lease.document_id == lease.partition_key == "orders"
    assert lease.model_dump(by_alias=True, mode="json")["id"] == "orders"


async def test_listener_survives_processor_cancellation(resources: CosmosResources, orders: FakeContainer):
    orders.seed({"id": "o1", "pk": "c1"}, {"id": "o2", "pk": "c2"})
    processor = RecordingProcessor(cancel_on={"c1"})
    listener = resources.listener(Order, processor, ChangeFeedOptions(max_degree_of_parallelism=2, **FAST))

    await listener.start()
    await _wait_for(lambda: len(processor.errors) == 1 and processor.seen_ids == ["o2"])
    assert listener.state is ListenerState.RUNNING

    await listener.stop()
    assert listener.state is ListenerState.STOPPED


async def test_externally_cancelled_listener_reports_stopped(resources: CosmosResources):
    listener = resources.listener(Order, RecordingProcessor(), ChangeFeedOptions(**FAST))
    await listener.start()

    listener._task.cancel()
    await _wait_for(lambda: listener.state is ListenerState.STOPPED)

    await listener.stop()
    assert listener.state is ListenerState.STOPPED
    await listener.start()
    assert listener.state is ListenerState.RUNNING
    await listener.stop()


async def test_stop_signals_long_running_processor(resources: CosmosResources, orders: FakeContainer):
    orders.seed({"id": "o1", "pk": "c1"})

    class WaitsForStop(RecordingProcessor):
        async def process(self, partition_key, changes, cancel=None):
            self.started.append(partition_key)
            await asyncio.wait_for(cancel.wait(), timeout=2.0)
            self.calls.append((partition_key, [c.id for c in changes]))

    processor = WaitsForStop()
    listener = resources.listener(Order, processor, ChangeFeedOptions(**FAST))

    await listener.start()
    await _wait_for(lambda: processor.started == ["c1"])
    await listener.stop()

    assert processor.seen_ids == ["o1"]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


async def test_service_starts_and_stops_all_listeners(resources: CosmosResources):
    first = resources.listener(Order, RecordingProcessor(), ChangeFeedOptions(**FAST))
    second = resources.listener(Order, RecordingProcessor(), ChangeFeedOptions(**FAST), processor_name="audit")
    service = ChangeFeedService([first])
    service.add(second)

    await service.start()
    assert first.state is second.state is ListenerState.RUNNING

    await service.stop()
    assert first.state is second.state is ListenerState.STOPPED

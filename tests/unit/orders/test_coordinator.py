"""Unit tests for the request coordinator.

Covers:
- In-flight registry: per (order, kind) keys, tokens, all-or-nothing bulk claims.
- Mutation guard: second call rejected (never queued), key released on error.
- Query de-duplication: latest wins, cancellation aborts the previous fetch,
  superseded failures are discarded.
"""

from __future__ import annotations

import asyncio

import pytest

from modules.orders.constants import MutationKind
from modules.orders.coordinator import (
    InFlightRegistry,
    QueryOutcome,
    RequestCoordinator,
)
from modules.orders.exceptions import MutationInFlight
from modules.orders.store import OrderStore

pytestmark = pytest.mark.unit


@pytest.fixture()
def registry():
    return InFlightRegistry()


@pytest.fixture()
def coordinator(store):
    return RequestCoordinator(store)


# ===========================================================================
# InFlightRegistry
# ===========================================================================


class TestInFlightRegistry:
    def test_second_acquire_of_same_key_raises(self, registry):
        registry.acquire("ord-1", MutationKind.INVOICE)
        with pytest.raises(MutationInFlight, match="Please wait") as exc_info:
            registry.acquire("ord-1", MutationKind.INVOICE)
        assert exc_info.value.order_id == "ord-1"
        assert exc_info.value.kind == "invoice"

    def test_other_kind_and_other_order_do_not_block(self, registry):
        registry.acquire("ord-1", MutationKind.INVOICE)
        registry.acquire("ord-1", MutationKind.REJECTION)
        registry.acquire("ord-2", MutationKind.INVOICE)
        assert len(registry) == 3
        assert registry.kinds_in_flight("ord-1") == {
            MutationKind.INVOICE,
            MutationKind.REJECTION,
        }

    def test_release_requires_matching_token(self, registry):
        token = registry.acquire("ord-1", MutationKind.STATUS_UPDATE)
        registry.release("ord-1", MutationKind.STATUS_UPDATE, object())
        assert registry.is_in_flight("ord-1", MutationKind.STATUS_UPDATE)
        registry.release("ord-1", MutationKind.STATUS_UPDATE, token)
        assert not registry.is_in_flight("ord-1")

    def test_acquire_many_is_all_or_nothing(self, registry):
        registry.acquire("b", MutationKind.INVOICE)
        with pytest.raises(MutationInFlight):
            registry.acquire_many(["a", "b", "c"], MutationKind.INVOICE)
        assert not registry.is_in_flight("a")
        assert not registry.is_in_flight("c")

    def test_acquire_many_deduplicates(self, registry):
        tokens = registry.acquire_many(["a", "a", "b"], MutationKind.INVOICE)
        assert set(tokens) == {"a", "b"}
        assert len(registry) == 2


# ===========================================================================
# Mutation guard
# ===========================================================================


class TestMutationGuard:
    def test_duplicate_click_rejected_while_pending(self, coordinator, store):
        calls = []

        async def scenario():
            gate = asyncio.Event()

            async def first():
                async with coordinator.mutation("ord-1", MutationKind.INVOICE):
                    calls.append("first")
                    await gate.wait()

            task = asyncio.create_task(first())
            await asyncio.sleep(0)
            assert store.is_busy("ord-1")

            with pytest.raises(MutationInFlight):
                async with coordinator.mutation("ord-1", MutationKind.INVOICE):
                    calls.append("second")

            gate.set()
            await task

        asyncio.run(scenario())
        assert calls == ["first"]
        assert not store.is_busy("ord-1")

    def test_different_orders_run_concurrently(self, coordinator, store):
        async def scenario():
            async with coordinator.mutation("ord-1", MutationKind.STATUS_UPDATE):
                async with coordinator.mutation("ord-2", MutationKind.STATUS_UPDATE):
                    assert len(store.in_flight) == 2

        asyncio.run(scenario())
        assert len(store.in_flight) == 0

    def test_key_released_when_call_fails(self, coordinator, store):
        async def scenario():
            async with coordinator.mutation("ord-1", MutationKind.REJECTION):
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(scenario())
        assert not store.is_busy("ord-1")

    def test_bulk_mutation_holds_every_key(self, coordinator, store):
        async def scenario():
            async with coordinator.bulk_mutation(["a", "b"], MutationKind.INVOICE):
                assert store.in_flight.is_in_flight("a", MutationKind.INVOICE)
                assert store.in_flight.is_in_flight("b", MutationKind.INVOICE)
                with pytest.raises(MutationInFlight):
                    async with coordinator.mutation("b", MutationKind.INVOICE):
                        pass

        asyncio.run(scenario())
        assert len(store.in_flight) == 0


# ===========================================================================
# Query de-duplication
# ===========================================================================


class TestRunQuery:
    def test_single_query_is_applied(self, coordinator, store):
        applied = []

        async def fetch():
            return "page-1"

        result = asyncio.run(
            coordinator.run_query(fetch, lambda gen, value: applied.append((gen, value)))
        )
        assert result.outcome is QueryOutcome.APPLIED
        assert result.applied
        assert result.value == "page-1"
        assert applied == [(store.generation, "page-1")]

    def test_latest_query_wins(self, coordinator):
        applied = []
        aborted = []
        started = []

        async def slow_fetch():
            started.append("q1")
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                aborted.append("q1")
                raise
            return "q1"

        async def fast_fetch():
            return "q2"

        async def scenario():
            apply = lambda gen, value: applied.append(value)  # noqa: E731
            first = asyncio.create_task(coordinator.run_query(slow_fetch, apply))
            while not started:
                await asyncio.sleep(0)
            second = await coordinator.run_query(fast_fetch, apply)
            return await first, second

        first, second = asyncio.run(scenario())
        assert first.outcome is QueryOutcome.CANCELLED
        assert second.outcome is QueryOutcome.APPLIED
        assert applied == ["q2"]
        assert aborted == ["q1"]

    def test_superseded_response_is_discarded(self, coordinator, store):
        applied = []

        async def fetch():
            # A newer query is issued while this one is awaiting.
            store.next_generation()
            return "old"

        result = asyncio.run(
            coordinator.run_query(fetch, lambda gen, value: applied.append(value))
        )
        assert result.outcome is QueryOutcome.STALE
        assert result.value is None
        assert applied == []

    def test_superseded_failure_is_discarded(self, coordinator, store):
        async def fetch():
            store.next_generation()
            raise ConnectionError("late failure")

        result = asyncio.run(coordinator.run_query(fetch, lambda gen, value: None))
        assert result.outcome is QueryOutcome.STALE

    def test_current_failure_propagates(self, coordinator):
        async def fetch():
            raise ConnectionError("backend down")

        with pytest.raises(ConnectionError):
            asyncio.run(coordinator.run_query(fetch, lambda gen, value: None))

    def test_cancel_active_query(self, coordinator):
        applied = []

        async def slow_fetch():
            await asyncio.sleep(10)
            return "never"

        async def scenario():
            task = asyncio.create_task(
                coordinator.run_query(slow_fetch, lambda g, v: applied.append(v))
            )
            await asyncio.sleep(0)
            coordinator.cancel_active_query()
            return await task

        result = asyncio.run(scenario())
        assert result.outcome is QueryOutcome.CANCELLED
        assert applied == []

    def test_generation_is_captured_at_issue_time(self):
        store = OrderStore()
        coordinator = RequestCoordinator(store)

        async def fetch():
            return None

        first = asyncio.run(coordinator.run_query(fetch, lambda g, v: None))
        second = asyncio.run(coordinator.run_query(fetch, lambda g, v: None))
        assert (first.generation, second.generation) == (1, 2)

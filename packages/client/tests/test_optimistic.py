"""
Tests for optimistic state and the mutation coordinator.

Covers:
- Immediate optimistic application and rollback on failure
- Concurrent mutations settling in any order
- Confirm folding, overlap warnings, reset re-application
- Terminal states and InvalidTransition
- Timeouts and transport errors as failures
- Metrics and recorded errors
"""

import asyncio

import httpx
import pytest
from structlog.testing import capture_logs

from trackline_client.api import TrackerAPIError
from trackline_client.metrics import MetricsCollector
from trackline_client.optimistic import (
    InvalidTransition,
    MutationState,
    OptimisticMutationCoordinator,
    OptimisticState,
)
from trackline_client.transforms import append_item, toggle_favorite
from trackline_shared.schemas.common import MutationResult

OK = MutationResult(success=True)


def _fail(error="Failed to toggle favorite"):
    return MutationResult(success=False, error=error)


def _controlled():
    """A durable call whose completion the test decides."""
    future = asyncio.get_running_loop().create_future()

    async def call():
        return await future

    return future, call


class TestOptimisticState:
    def test_begin_applies_immediately(self):
        state = OptimisticState([{"id": "p1", "is_favorite": False}])
        mutation = state.begin(toggle_favorite("p1"))
        assert mutation.state is MutationState.OPTIMISTIC
        assert state.value == [{"id": "p1", "is_favorite": True}]
        assert state.base == [{"id": "p1", "is_favorite": False}]

    def test_rollback_reverts(self):
        state = OptimisticState([{"id": "p1", "is_favorite": False}])
        mutation = state.begin(toggle_favorite("p1"))
        state.rollback(mutation.id, "boom")
        assert state.value == [{"id": "p1", "is_favorite": False}]
        assert mutation.state is MutationState.ROLLED_BACK
        assert mutation.error == "boom"
        assert mutation.settled

    def test_confirm_folds_into_base(self):
        state = OptimisticState([])
        mutation = state.begin(append_item("a"))
        state.confirm(mutation.id)
        assert state.base == ["a"]
        assert state.value == ["a"]
        assert state.pending == []

    def test_confirm_waits_for_earlier_mutations(self):
        state = OptimisticState([])
        first = state.begin(append_item("a"))
        second = state.begin(append_item("b"))

        state.confirm(second.id)
        assert state.base == []
        assert state.value == ["a", "b"]

        state.rollback(first.id)
        assert state.base == ["b"]
        assert state.value == ["b"]

    def test_rollback_keeps_later_transforms(self):
        state = OptimisticState([])
        first = state.begin(append_item("a"))
        state.begin(append_item("b"))
        state.rollback(first.id)
        assert state.value == ["b"]

    def test_rollback_overlap_is_logged(self):
        state = OptimisticState([{"id": "p1", "is_favorite": False}])
        first = state.begin(toggle_favorite("p1"), entity_key="p1")
        state.begin(toggle_favorite("p1"), entity_key="p1")

        with capture_logs() as logs:
            state.rollback(first.id)

        assert any(entry["event"] == "optimistic.rollback_overlap" for entry in logs)
        # Last writer wins: only the second toggle remains applied.
        assert state.value == [{"id": "p1", "is_favorite": True}]

    def test_reset_reapplies_pending(self):
        state = OptimisticState([])
        done = state.begin(append_item("a"))
        state.begin(append_item("b"))
        state.confirm(done.id)

        state.reset(["a", "server"])
        assert state.base == ["a", "server"]
        assert state.value == ["a", "server", "b"]

    def test_settled_mutation_cannot_transition_again(self):
        state = OptimisticState([])
        mutation = state.begin(append_item("a"))
        state.confirm(mutation.id)
        with pytest.raises(InvalidTransition):
            state.rollback(mutation.id)
        with pytest.raises(InvalidTransition):
            state.confirm(mutation.id)

    def test_settled_mutations_are_not_retained(self):
        state = OptimisticState([])
        first = state.begin(append_item("a"))
        second = state.begin(append_item("b"))
        state.confirm(second.id)
        state.rollback(first.id)
        state.reset(["b"])

        assert state._applied == []
        with pytest.raises(InvalidTransition):
            state.confirm(first.id)
        with pytest.raises(InvalidTransition):
            state.rollback(second.id)
        with pytest.raises(KeyError):
            state.confirm(second.id + 1)

    def test_unknown_mutation(self):
        state = OptimisticState([])
        with pytest.raises(KeyError):
            state.confirm(999)

    def test_failing_transform_leaves_state_untouched(self):
        state = OptimisticState([{"id": "p1"}])
        with pytest.raises(KeyError):
            state.begin(toggle_favorite("p1"))
        assert state.value == [{"id": "p1"}]
        assert state.pending == []

    def test_listeners(self):
        state = OptimisticState([])
        seen = []
        unsubscribe = state.subscribe(seen.append)
        mutation = state.begin(append_item("a"))
        state.rollback(mutation.id)
        unsubscribe()
        state.begin(append_item("b"))
        assert seen == [["a"], []]


class TestCoordinator:
    @pytest.mark.asyncio
    async def test_favorite_toggle_reverts_on_failure(self):
        coordinator = OptimisticMutationCoordinator([{"id": "p1", "isFavorite": False}])
        future, call = _controlled()

        task = coordinator.dispatch(toggle_favorite("p1", field="isFavorite"), call)
        assert coordinator.value == [{"id": "p1", "isFavorite": True}]

        future.set_result(_fail())
        outcome = await task

        assert outcome.state is MutationState.ROLLED_BACK
        assert coordinator.value == [{"id": "p1", "isFavorite": False}]
        assert coordinator.errors == ["Failed to toggle favorite"]

    @pytest.mark.asyncio
    async def test_favorite_toggle_confirms(self):
        coordinator = OptimisticMutationCoordinator([{"id": "p1", "isFavorite": False}])

        async def call():
            return MutationResult(success=True, data={"isFavorite": True})

        outcome = await coordinator.mutate(toggle_favorite("p1", field="isFavorite"), call)

        assert outcome.confirmed
        assert outcome.data == {"isFavorite": True}
        assert coordinator.state.base == [{"id": "p1", "isFavorite": True}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("order", [("p1", "p2"), ("p2", "p1")])
    async def test_concurrent_toggles_are_independent(self, order):
        coordinator = OptimisticMutationCoordinator(
            [{"id": "p1", "isFavorite": False}, {"id": "p2", "isFavorite": False}]
        )
        f1, call1 = _controlled()
        f2, call2 = _controlled()
        t1 = coordinator.dispatch(toggle_favorite("p1", field="isFavorite"), call1, "p1")
        t2 = coordinator.dispatch(toggle_favorite("p2", field="isFavorite"), call2, "p2")
        assert coordinator.value == [
            {"id": "p1", "isFavorite": True},
            {"id": "p2", "isFavorite": True},
        ]

        # p1 fails, p2 succeeds; completion order varies.
        results = {"p1": (f1, _fail()), "p2": (f2, OK)}
        for key in order:
            future, result = results[key]
            future.set_result(result)
            await asyncio.sleep(0)
        await asyncio.gather(t1, t2)

        assert coordinator.value == [
            {"id": "p1", "isFavorite": False},
            {"id": "p2", "isFavorite": True},
        ]
        assert coordinator.state.pending == []
        assert coordinator.in_flight == 0

    @pytest.mark.asyncio
    async def test_timeout_rolls_back(self):
        metrics = MetricsCollector()
        coordinator = OptimisticMutationCoordinator([], mutation_timeout=0.01, metrics=metrics)
        never, call = _controlled()

        outcome = await coordinator.mutate(append_item("a"), call)

        assert outcome.state is MutationState.ROLLED_BACK
        assert "timed out" in outcome.error
        assert coordinator.value == []
        assert metrics.get("mutations_timed_out_total") == 1
        assert metrics.get("mutations_rolled_back_total") == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc",
        [TrackerAPIError("Request failed: down"), httpx.ConnectError("down")],
    )
    async def test_transport_errors_roll_back(self, exc):
        coordinator = OptimisticMutationCoordinator([])

        async def call():
            raise exc

        outcome = await coordinator.mutate(append_item("a"), call)
        assert outcome.state is MutationState.ROLLED_BACK
        assert coordinator.value == []
        assert len(coordinator.errors) == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_rolls_back_and_propagates(self):
        coordinator = OptimisticMutationCoordinator([])

        async def call():
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await coordinator.mutate(append_item("a"), call)
        assert coordinator.value == []

    @pytest.mark.asyncio
    async def test_reconcile_twice_raises(self):
        coordinator = OptimisticMutationCoordinator([])
        mutation = coordinator.begin_optimistic_update(append_item("a"))
        coordinator.reconcile(mutation, OK)
        with pytest.raises(InvalidTransition):
            coordinator.reconcile(mutation, _fail())
        assert coordinator.value == ["a"]

    @pytest.mark.asyncio
    async def test_metrics_track_pending(self):
        metrics = MetricsCollector()
        coordinator = OptimisticMutationCoordinator([], metrics=metrics)
        future, call = _controlled()

        task = coordinator.dispatch(append_item("a"), call)
        assert metrics.get("mutations_started_total") == 1
        assert metrics.get("mutations_pending") == 1

        future.set_result(OK)
        await task
        assert metrics.get("mutations_confirmed_total") == 1
        assert metrics.get("mutations_pending") == 0

    @pytest.mark.asyncio
    async def test_drain_waits_for_everything(self):
        coordinator = OptimisticMutationCoordinator([])

        async def ok():
            await asyncio.sleep(0)
            return OK

        coordinator.dispatch(append_item("a"), ok)
        coordinator.dispatch(append_item("b"), ok)
        outcomes = await coordinator.drain()

        assert [o.state for o in outcomes] == [MutationState.CONFIRMED] * 2
        assert coordinator.state.base == ["a", "b"]

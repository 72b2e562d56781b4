"""
Optimistic mutation coordination.

A displayed value is kept ahead of the server: the user's change is applied
locally as a pure transform, the durable mutation runs in the background, and
its outcome either confirms the transform or rolls it back.

Each mutation moves IDLE -> OPTIMISTIC -> CONFIRMED | ROLLED_BACK. The last two
are terminal. Several mutations may be outstanding at once and may settle in
any order; the displayed value is always the base with every still-applied
transform re-run in the order the mutations were begun.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import httpx
import structlog

from trackline_shared.schemas.common import MutationResult

from .api import TrackerAPIError
from .metrics import MetricsCollector

log = structlog.get_logger()

T = TypeVar("T")

DEFAULT_MUTATION_TIMEOUT_SECONDS = 15.0
MAX_RECORDED_ERRORS = 50

Listener = Callable[[Any], None]
DurableCall = Callable[[], Awaitable[MutationResult]]


class MutationState(str, Enum):
    IDLE = "idle"
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


TERMINAL_STATES = frozenset({MutationState.CONFIRMED, MutationState.ROLLED_BACK})


class InvalidTransition(Exception):
    """A mutation was reconciled from a state that does not allow it."""


@dataclass(eq=False)
class PendingMutation:
    id: int
    transform: Callable[[Any], Any]
    entity_key: Optional[str] = None
    state: MutationState = MutationState.IDLE
    error: Optional[str] = None

    @property
    def settled(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass(frozen=True)
class MutationOutcome:
    mutation_id: int
    state: MutationState
    error: Optional[str] = None
    data: Optional[dict[str, Any]] = None

    @property
    def confirmed(self) -> bool:
        return self.state is MutationState.CONFIRMED


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class OptimisticState(Generic[T]):
    """
    A server-confirmed base value plus the ordered transforms still applied on top.

    Confirmed mutations are folded into the base only once every mutation begun
    before them has settled, so a confirmation never changes the order in which
    transforms apply.
    """

    def __init__(self, base: T, name: str = "state"):
        self._base = base
        self._name = name
        self._applied: list[PendingMutation] = []
        self._last_id = 0
        self._listeners: list[Listener] = []
        self._value = base

    @property
    def value(self) -> T:
        return self._value

    @property
    def base(self) -> T:
        return self._base

    @property
    def pending(self) -> list[PendingMutation]:
        """Mutations still waiting for their durable outcome, in begin order."""
        return [m for m in self._applied if m.state is MutationState.OPTIMISTIC]

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(value)`` after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- Transitions ---

    def begin(
        self, transform: Callable[[T], T], entity_key: Optional[str] = None
    ) -> PendingMutation:
        # Apply before registering so a failing transform leaves the state untouched.
        new_value = transform(self._value)
        self._last_id += 1
        mutation = PendingMutation(
            id=self._last_id,
            transform=transform,
            entity_key=entity_key,
            state=MutationState.OPTIMISTIC,
        )
        self._applied.append(mutation)
        self._value = new_value
        log.debug("optimistic.begin", state=self._name, mutation_id=mutation.id, entity_key=entity_key)
        self._notify()
        return mutation

    def confirm(self, mutation_id: int) -> PendingMutation:
        mutation = self._take_optimistic(mutation_id)
        mutation.state = MutationState.CONFIRMED
        self._fold_confirmed()
        self._notify()
        return mutation

    def rollback(self, mutation_id: int, error: Optional[str] = None) -> PendingMutation:
        mutation = self._take_optimistic(mutation_id)
        mutation.state = MutationState.ROLLED_BACK
        mutation.error = error

        index = self._applied.index(mutation)
        if mutation.entity_key is not None:
            overlapping = [
                m.id
                for m in self._applied[index + 1:]
                if m.entity_key == mutation.entity_key and m.state is MutationState.OPTIMISTIC
            ]
            if overlapping:
                log.warning(
                    "optimistic.rollback_overlap",
                    state=self._name,
                    mutation_id=mutation.id,
                    entity_key=mutation.entity_key,
                    later_mutations=overlapping,
                )
        del self._applied[index]

        self._fold_confirmed()
        self._recompute()
        self._notify()
        return mutation

    def reset(self, base: T) -> None:
        """Install a fresh server value. Still-pending transforms are re-applied on top."""
        self._base = base
        self._applied = [m for m in self._applied if m.state is MutationState.OPTIMISTIC]
        self._recompute()
        self._notify()

    # --- Internals ---

    def _take_optimistic(self, mutation_id: int) -> PendingMutation:
        for mutation in self._applied:
            if mutation.id == mutation_id:
                if mutation.state is not MutationState.OPTIMISTIC:
                    raise InvalidTransition(
                        f"Mutation {mutation_id} is {mutation.state.value}, not optimistic"
                    )
                return mutation
        # Ids are handed out in sequence; an issued id that is no longer applied has settled.
        if 0 < mutation_id <= self._last_id:
            raise InvalidTransition(f"Mutation {mutation_id} is already settled")
        raise KeyError(mutation_id)

    def _fold_confirmed(self) -> None:
        while self._applied and self._applied[0].state is MutationState.CONFIRMED:
            self._base = self._applied.pop(0).transform(self._base)

    def _recompute(self) -> None:
        value = self._base
        for mutation in self._applied:
            value = mutation.transform(value)
        self._value = value

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._value)


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class OptimisticMutationCoordinator(Generic[T]):
    """
    Runs optimistic updates against an OptimisticState and reconciles them
    with durable mutation outcomes.

    Failed mutations are rolled back, logged, counted and kept in ``errors``
    for display.
    """

    def __init__(
        self,
        initial: T,
        *,
        name: str = "state",
        mutation_timeout: float = DEFAULT_MUTATION_TIMEOUT_SECONDS,
        metrics: MetricsCollector | None = None,
    ):
        self.state: OptimisticState[T] = OptimisticState(initial, name=name)
        self._name = name
        self._mutation_timeout = mutation_timeout
        self._metrics = metrics
        self._tasks: set[asyncio.Task] = set()
        self.errors: list[str] = []

    @property
    def value(self) -> T:
        return self.state.value

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def begin_optimistic_update(
        self, transform: Callable[[T], T], entity_key: Optional[str] = None
    ) -> PendingMutation:
        """Apply ``transform`` locally, right away, before any I/O."""
        mutation = self.state.begin(transform, entity_key)
        if self._metrics:
            self._metrics.inc("mutations_started_total")
            self._metrics.add_gauge("mutations_pending", 1)
        return mutation

    async def submit_durable_mutation(self, call: DurableCall) -> MutationResult:
        """Await the durable call. Timeouts and transport errors become failed results."""
        try:
            return await asyncio.wait_for(call(), timeout=self._mutation_timeout)
        except asyncio.TimeoutError:
            log.warning("optimistic.timed_out", state=self._name, timeout=self._mutation_timeout)
            if self._metrics:
                self._metrics.inc("mutations_timed_out_total")
            return MutationResult(
                success=False,
                error=f"Request timed out after {self._mutation_timeout:g}s",
            )
        except TrackerAPIError as exc:
            return MutationResult(success=False, error=exc.message)
        except httpx.HTTPError as exc:
            return MutationResult(success=False, error=f"Request failed: {exc}")

    def reconcile(self, mutation: PendingMutation, result: MutationResult) -> MutationOutcome:
        """Confirm or roll back ``mutation``. Raises InvalidTransition if it already settled."""
        if result.success:
            self.state.confirm(mutation.id)
            if self._metrics:
                self._metrics.inc("mutations_confirmed_total")
                self._metrics.add_gauge("mutations_pending", -1)
            log.info("optimistic.confirmed", state=self._name, mutation_id=mutation.id)
            return MutationOutcome(mutation.id, MutationState.CONFIRMED, data=result.data)

        error = result.error or "Mutation failed"
        self.state.rollback(mutation.id, error)
        self._record_error(error)
        if self._metrics:
            self._metrics.inc("mutations_rolled_back_total")
            self._metrics.add_gauge("mutations_pending", -1)
        log.warning(
            "optimistic.rolled_back",
            state=self._name,
            mutation_id=mutation.id,
            entity_key=mutation.entity_key,
            error=error,
        )
        return MutationOutcome(mutation.id, MutationState.ROLLED_BACK, error=error)

    async def mutate(
        self,
        transform: Callable[[T], T],
        call: DurableCall,
        entity_key: Optional[str] = None,
    ) -> MutationOutcome:
        """Begin, submit and reconcile one mutation."""
        mutation = self.begin_optimistic_update(transform, entity_key)
        return await self._settle(mutation, call)

    def dispatch(
        self,
        transform: Callable[[T], T],
        call: DurableCall,
        entity_key: Optional[str] = None,
    ) -> asyncio.Task:
        """Like ``mutate``, but the optimistic value is visible as soon as this returns.

        The durable call and reconciliation continue in a background task.
        """
        mutation = self.begin_optimistic_update(transform, entity_key)
        task = asyncio.get_running_loop().create_task(self._settle(mutation, call))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> list[MutationOutcome]:
        """Wait for every dispatched mutation to settle."""
        if not self._tasks:
            return []
        return list(await asyncio.gather(*list(self._tasks)))

    async def _settle(self, mutation: PendingMutation, call: DurableCall) -> MutationOutcome:
        try:
            result = await self.submit_durable_mutation(call)
        except BaseException:
            # Unexpected failure or cancellation: the transform must not stay applied.
            self.reconcile(mutation, MutationResult(success=False, error="Mutation aborted"))
            raise
        return self.reconcile(mutation, result)

    def _record_error(self, error: str) -> None:
        self.errors.append(error)
        del self.errors[:-MAX_RECORDED_ERRORS]

"""Request coordinator.

Two guards with different strategies:

- **Mutation guard**: an ``InFlightRegistry`` keyed by ``(order_id, kind)``.
  While a key holds a token, a second mutation of the same kind for the
  same order is rejected with ``MutationInFlight``; it is never queued.
  Different orders, and different kinds on one order, do not block each
  other.
- **Query de-duplication**: each list query captures the store generation
  at issue time and gets a cancellation ticket.  Issuing a new query
  cancels the previous ticket, which aborts its transport call.  A
  response is applied only if its ticket is live and its generation is
  still the store's current one ("latest wins").
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    Optional,
    Set,
    Tuple,
    TypeVar,
)
from uuid import UUID, uuid4

import structlog

from modules.orders.constants import MutationKind
from modules.orders.exceptions import MutationInFlight

if TYPE_CHECKING:
    from modules.orders.store import OrderStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class InFlightRegistry:
    """Per-order, per-action-kind in-flight tokens."""

    def __init__(self) -> None:
        self._tokens: Dict[Tuple[str, MutationKind], UUID] = {}

    def acquire(self, order_id: str, kind: MutationKind) -> UUID:
        """Claim ``(order_id, kind)``.

        Raises:
            MutationInFlight: the key is already claimed.
        """
        key = (order_id, kind)
        if key in self._tokens:
            logger.info(
                "mutation.rejected_in_flight", order_id=order_id, kind=kind.value
            )
            raise MutationInFlight(order_id, kind.value)
        token = uuid4()
        self._tokens[key] = token
        return token

    def acquire_many(
        self, order_ids: Iterable[str], kind: MutationKind
    ) -> Dict[str, UUID]:
        """Claim the key of every order, all or nothing."""
        order_ids = list(dict.fromkeys(order_ids))
        for order_id in order_ids:
            if (order_id, kind) in self._tokens:
                logger.info(
                    "mutation.rejected_in_flight", order_id=order_id, kind=kind.value
                )
                raise MutationInFlight(order_id, kind.value)
        return {order_id: self.acquire(order_id, kind) for order_id in order_ids}

    def release(self, order_id: str, kind: MutationKind, token: UUID) -> None:
        """Release a key, only if *token* is the one that claimed it."""
        key = (order_id, kind)
        if self._tokens.get(key) == token:
            del self._tokens[key]

    def is_in_flight(self, order_id: str, kind: Optional[MutationKind] = None) -> bool:
        if kind is not None:
            return (order_id, kind) in self._tokens
        return any(key[0] == order_id for key in self._tokens)

    def kinds_in_flight(self, order_id: str) -> Set[MutationKind]:
        return {kind for oid, kind in self._tokens if oid == order_id}

    def __len__(self) -> int:
        return len(self._tokens)


class QueryOutcome(str, Enum):
    APPLIED = "applied"
    STALE = "stale"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    outcome: QueryOutcome
    generation: int
    value: Optional[T] = None

    @property
    def applied(self) -> bool:
        return self.outcome is QueryOutcome.APPLIED


class QueryTicket:
    """Cancellation token of one issued query."""

    def __init__(self, generation: int, task: "asyncio.Future") -> None:
        self.generation = generation
        self.task = task
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        if not self.task.done():
            self.task.cancel()


class RequestCoordinator:
    """Wraps every mutation and every list query issued against the backend."""

    def __init__(self, store: OrderStore) -> None:
        self._store = store
        self._active_query: Optional[QueryTicket] = None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def mutation(self, order_id: str, kind: MutationKind) -> AsyncIterator[UUID]:
        """Hold the in-flight key of one order for the duration of a call."""
        registry = self._store.in_flight
        token = registry.acquire(order_id, kind)
        try:
            yield token
        finally:
            registry.release(order_id, kind, token)

    @asynccontextmanager
    async def bulk_mutation(
        self, order_ids: Iterable[str], kind: MutationKind
    ) -> AsyncIterator[Dict[str, UUID]]:
        """Hold the in-flight key of every order in a batch."""
        registry = self._store.in_flight
        tokens = registry.acquire_many(order_ids, kind)
        try:
            yield tokens
        finally:
            for order_id, token in tokens.items():
                registry.release(order_id, kind, token)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def run_query(
        self,
        fetch: Callable[[], Awaitable[T]],
        apply: Callable[[int, T], object],
    ) -> QueryResult[T]:
        """Issue a query and apply its response only if it is still the latest.

        The previous query, if still running, is cancelled first.  Errors
        of a superseded query are discarded like its results; errors of
        the current query propagate.
        """
        generation = self._store.next_generation()
        self.cancel_active_query()

        task = asyncio.ensure_future(fetch())
        ticket = QueryTicket(generation, task)
        self._active_query = ticket
        log = logger.bind(generation=generation)

        try:
            value = await task
        except asyncio.CancelledError:
            if ticket.cancelled:
                log.info("query.cancelled")
                return QueryResult(QueryOutcome.CANCELLED, generation)
            raise
        except Exception:
            if not self._is_current(ticket):
                log.info("query.discarded", reason="superseded_failure")
                return QueryResult(QueryOutcome.STALE, generation)
            raise
        finally:
            if self._active_query is ticket and task.done():
                self._active_query = None

        if not self._is_current(ticket):
            log.info("query.discarded", reason="superseded")
            return QueryResult(QueryOutcome.STALE, generation)

        apply(generation, value)
        log.debug("query.applied")
        return QueryResult(QueryOutcome.APPLIED, generation, value)

    def cancel_active_query(self) -> None:
        """Cancel the running query, if any."""
        ticket = self._active_query
        if ticket is not None:
            ticket.cancel()
            self._active_query = None

    def _is_current(self, ticket: QueryTicket) -> bool:
        return not ticket.cancelled and self._store.is_current(ticket.generation)

"""Client-held cache of order summaries.

The store is written **only** from the success branch of a confirmed
backend call; nothing is applied speculatively.  Patches carry exactly
the fields the backend confirmed.  ``last_updated`` is owned by the
backend: a patch whose timestamp is older than the cached record is
ignored, because the cached record has already superseded it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

import structlog

from modules.orders.constants import OrderStatus
from modules.orders.coordinator import InFlightRegistry
from modules.orders.dtos import (
    ConfirmedDelivery,
    ConfirmedOrderFields,
    DeliveryInfo,
    EstimatedRange,
    ListOrdersQuery,
    OrderDTO,
    OrderListResponse,
    PaginationDTO,
)
from modules.orders.exceptions import OrderNotFound

logger = structlog.get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OrderStore:
    """Orders of the current page, pagination, selection and in-flight flags."""

    def __init__(self) -> None:
        self._orders: Dict[str, OrderDTO] = {}
        self._selected: Set[str] = set()
        self.pagination: Optional[PaginationDTO] = None
        self.query: Optional[ListOrdersQuery] = None
        self.in_flight = InFlightRegistry()
        self._generation = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def orders(self) -> List[OrderDTO]:
        return list(self._orders.values())

    def get(self, order_id: str) -> OrderDTO:
        """Return a cached order.

        Raises:
            OrderNotFound: the order is not on the current page.
        """
        try:
            return self._orders[order_id]
        except KeyError:
            raise OrderNotFound(f"Order {order_id} not found.") from None

    def __contains__(self, order_id: object) -> bool:
        return order_id in self._orders

    def __len__(self) -> int:
        return len(self._orders)

    def is_busy(self, order_id: str) -> bool:
        """``True`` while any mutation for the order is in flight."""
        return self.in_flight.is_in_flight(order_id)

    # ------------------------------------------------------------------
    # Query generations
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    def next_generation(self) -> int:
        """Start a new query generation and return it."""
        self._generation += 1
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def replace_listing(
        self,
        generation: int,
        response: OrderListResponse,
        query: Optional[ListOrdersQuery] = None,
    ) -> bool:
        """Replace the cached page with a list response of *generation*.

        Returns ``False`` (and changes nothing) when a newer query has been
        issued since.  Selected ids that are no longer listed are dropped.
        """
        if not self.is_current(generation):
            logger.info(
                "store.listing_discarded",
                generation=generation,
                current_generation=self._generation,
            )
            return False
        self._orders = {order.id: order for order in response.orders}
        self.pagination = response.pagination
        if query is not None:
            self.query = query
        self._selected &= set(self._orders)
        logger.info(
            "store.listing_replaced",
            generation=generation,
            count=len(self._orders),
        )
        return True

    # ------------------------------------------------------------------
    # Confirmed patches
    # ------------------------------------------------------------------

    def apply_status_update(
        self,
        order_id: str,
        confirmed: ConfirmedOrderFields,
        delivery: Optional[DeliveryInfo] = None,
        requested_status: Optional[OrderStatus] = None,
    ) -> Optional[OrderDTO]:
        """Patch status, ``last_updated`` and, when committed, the delivery block.

        A response without a status confirms *requested_status*.
        """
        changes: Dict[str, object] = {}
        status = confirmed.status or requested_status
        if status is not None:
            changes["status"] = status
        confirmed_delivery = confirmed.delivery or delivery
        if confirmed_delivery is not None:
            changes["delivery"] = confirmed_delivery
        return self._patch(order_id, confirmed.last_updated, changes)

    def apply_rejection(
        self, order_id: str, confirmed: ConfirmedOrderFields
    ) -> Optional[OrderDTO]:
        return self._patch(
            order_id,
            confirmed.last_updated,
            {
                "status": confirmed.status or OrderStatus.REJECTED,
                "rejection_reason": confirmed.rejection_reason,
                "rejected_at": confirmed.rejected_at,
            },
        )

    def apply_invoice(self, order_id: str, invoice_number: str) -> Optional[OrderDTO]:
        """Mark an order invoiced.  An invoice number is assigned at most once."""
        order = self._orders.get(order_id)
        if order is None:
            return None
        if order.is_invoiced:
            logger.warning(
                "store.invoice_already_assigned",
                order_id=order_id,
                invoice_number=order.invoice_number,
            )
            return order
        updated = order.model_copy(
            update={"is_invoiced": True, "invoice_number": invoice_number}
        )
        self._orders[order_id] = updated
        return updated

    def apply_delivery_update(
        self,
        order_id: str,
        confirmed: ConfirmedOrderFields,
        new_delivery: ConfirmedDelivery,
    ) -> Optional[OrderDTO]:
        """Replace the delivery block after a standalone delivery edit.

        The estimated window is rebuilt from the confirmed slot on the
        confirmed day.
        """
        order = self._orders.get(order_id)
        if order is None:
            return None
        expected = new_delivery.expected_delivery
        (start_h, start_m), (end_h, end_m) = new_delivery.delivery_time_slot.bounds
        delivery = DeliveryInfo(
            expected_delivery=expected,
            delivered_at=None,
            delivery_time_slot=new_delivery.delivery_time_slot,
            delivery_date_type=new_delivery.delivery_date_type,
            is_manually_set=True,
            estimated_range=EstimatedRange(
                earliest=expected.replace(
                    hour=start_h, minute=start_m, second=0, microsecond=0
                ),
                latest=expected.replace(
                    hour=end_h, minute=end_m, second=0, microsecond=0
                ),
            ),
        )
        return self._patch(order_id, confirmed.last_updated, {"delivery": delivery})

    def _patch(
        self, order_id: str, last_updated: datetime, changes: Dict[str, object]
    ) -> Optional[OrderDTO]:
        order = self._orders.get(order_id)
        if order is None:
            # Not on the current page any more; the next listing carries it.
            logger.info("store.patch_skipped_absent", order_id=order_id)
            return None
        if _as_utc(last_updated) < _as_utc(order.last_updated):
            logger.info(
                "store.patch_skipped_superseded",
                order_id=order_id,
                cached_last_updated=order.last_updated.isoformat(),
                confirmed_last_updated=last_updated.isoformat(),
            )
            return order
        updated = order.model_copy(update={**changes, "last_updated": last_updated})
        self._orders[order_id] = updated
        return updated

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selected_ids(self) -> FrozenSet[str]:
        return frozenset(self._selected)

    def toggle_selection(self, order_id: str) -> bool:
        """Flip the selection of a listed order and return the new state."""
        if order_id not in self._orders:
            raise OrderNotFound(f"Order {order_id} not found.")
        if order_id in self._selected:
            self._selected.discard(order_id)
            return False
        self._selected.add(order_id)
        return True

    def select_all(self) -> None:
        self._selected = set(self._orders)

    def deselect(self, order_ids: Iterable[str]) -> None:
        self._selected.difference_update(order_ids)

    def clear_selection(self) -> None:
        self._selected.clear()

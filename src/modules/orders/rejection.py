"""Rejection handler.

Rejection is orthogonal to the forward progression: any order that is
neither rejected nor invoiced may be rejected, with a reason.  No
operation moves an order out of ``rejected``.
"""

from __future__ import annotations

from modules.orders.constants import TERMINAL_STATES, OrderStatus
from modules.orders.dtos import OrderDTO, RejectionPayload
from modules.orders.exceptions import InvalidOrderStatus, MissingRejectionReason


class RejectionHandler:
    def can_reject(self, status: OrderStatus) -> bool:
        return status not in TERMINAL_STATES

    def reject(self, order: OrderDTO, reason: str) -> RejectionPayload:
        """Validate a rejection and return its commit payload.

        Raises:
            MissingRejectionReason: *reason* is empty after trimming.
            InvalidOrderStatus: the order is already rejected or invoiced.
        """
        cleaned = (reason or "").strip()
        if not cleaned:
            raise MissingRejectionReason("Enter a reason for rejecting the order.")
        if not self.can_reject(order.status):
            raise InvalidOrderStatus(
                f"Cannot reject order {order.order_number} in status "
                f"{order.status.value}."
            )
        return RejectionPayload(reason=cleaned)

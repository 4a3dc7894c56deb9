"""Order gateway interface.

The authoritative order records live in the backend.  The service layer
depends exclusively on this contract (DIP); the concrete HTTP
implementation is ``OrderHttpGateway``.

Every mutation asks the backend to notify the customer.  Implementations
raise ``GatewayError`` for any non-success answer or network failure and
let ``asyncio.CancelledError`` propagate untouched.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from modules.orders.dtos import (
        BulkInvoiceResponse,
        DeliveryUpdatePayload,
        DeliveryUpdateResponse,
        InvoiceResponse,
        ListOrdersQuery,
        OrderListResponse,
        RejectionPayload,
        RejectionResponse,
        StatusUpdatePayload,
        StatusUpdateResponse,
    )


class IOrderGateway(ABC):
    """Backend contract for the order admin core."""

    @abstractmethod
    async def update_status(
        self, order_id: str, payload: StatusUpdatePayload
    ) -> StatusUpdateResponse:
        """Move an order forward; echoes the new status and ``lastUpdated``."""

    @abstractmethod
    async def reject(
        self, order_id: str, payload: RejectionPayload
    ) -> RejectionResponse:
        """Reject an order; echoes status, reason and ``rejectedAt``."""

    @abstractmethod
    async def send_invoice(self, order_id: str) -> InvoiceResponse:
        """Send the invoice for one order and return its number."""

    @abstractmethod
    async def send_invoices_bulk(
        self, order_ids: Sequence[str]
    ) -> BulkInvoiceResponse:
        """Send invoices for a batch; one result per order, not atomic."""

    @abstractmethod
    async def update_delivery(
        self, order_id: str, payload: DeliveryUpdatePayload
    ) -> DeliveryUpdateResponse:
        """Edit the delivery block without touching the status."""

    @abstractmethod
    async def list_orders(self, query: ListOrdersQuery) -> OrderListResponse:
        """List one page of orders."""

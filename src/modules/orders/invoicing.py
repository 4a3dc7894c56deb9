"""Invoice dispatcher.

``is_invoiced`` is a flag independent of the status progression.  It can
be set for one order, or for a batch.  A batch is **not** atomic: each
member is processed on its own by the backend, and the client applies
only the successful entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

import structlog

from modules.core.exceptions import GatewayError, MalformedResponse
from modules.orders.constants import INVOICEABLE_STATES
from modules.orders.dtos import (
    BulkInvoiceResponse,
    BulkInvoiceResult,
    InvoiceResponse,
    OrderDTO,
)
from modules.orders.exceptions import EmptySelection, InvalidOrderStatus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BulkInvoiceOutcome:
    """Reconciled result of a bulk invoice call, one entry per requested order."""

    results: Tuple[BulkInvoiceResult, ...]
    success_count: int
    error_count: int

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> Tuple[BulkInvoiceResult, ...]:
        return tuple(result for result in self.results if result.success)

    @property
    def failed(self) -> Tuple[BulkInvoiceResult, ...]:
        return tuple(result for result in self.results if not result.success)

    @property
    def is_total_failure(self) -> bool:
        return self.total > 0 and self.success_count == 0

    @property
    def is_partial_failure(self) -> bool:
        return self.success_count > 0 and self.error_count > 0

    def summary_message(self) -> str:
        if self.error_count == 0:
            return f"{self.success_count} invoice(s) sent."
        if self.is_total_failure:
            return f"No invoices sent; {self.error_count} order(s) failed."
        return (
            f"{self.success_count} invoice(s) sent, "
            f"{self.error_count} order(s) failed."
        )


class InvoiceDispatcher:
    def can_invoice(self, order: OrderDTO) -> bool:
        return order.status in INVOICEABLE_STATES and not order.is_invoiced

    def validate(self, order: OrderDTO) -> None:
        """Raises ``InvalidOrderStatus`` unless the order can be invoiced now."""
        if order.is_invoiced:
            raise InvalidOrderStatus(
                f"Order {order.order_number} is already invoiced "
                f"({order.invoice_number})."
            )
        if order.status not in INVOICEABLE_STATES:
            raise InvalidOrderStatus(
                f"Cannot invoice order {order.order_number} in status "
                f"{order.status.value}."
            )

    def validate_selection(self, order_ids: Iterable[str]) -> Tuple[str, ...]:
        """Return the de-duplicated selection.

        Raises:
            EmptySelection: nothing is selected.
        """
        unique = tuple(dict.fromkeys(order_ids))
        if not unique:
            raise EmptySelection("Select at least one order to invoice.")
        return unique

    def confirm(self, order_id: str, response: InvoiceResponse) -> str:
        """Return the invoice number of a single-invoice response."""
        if not response.success:
            raise GatewayError(f"Invoice for order {order_id} was not sent.")
        if not response.invoice_number:
            raise MalformedResponse(
                f"Invoice response for order {order_id} carries no invoice number."
            )
        return response.invoice_number

    def reconcile(
        self, order_ids: Tuple[str, ...], response: BulkInvoiceResponse
    ) -> BulkInvoiceOutcome:
        """Match a bulk response against the requested ids.

        Raises:
            MalformedResponse: the result list does not have exactly one entry
                per requested order.
        """
        by_id: Dict[str, BulkInvoiceResult] = {
            result.order_id: result for result in response.results
        }
        if len(response.results) != len(order_ids) or set(by_id) != set(order_ids):
            raise MalformedResponse(
                f"Bulk invoice returned {len(response.results)} result(s) for "
                f"{len(order_ids)} order(s)."
            )

        results = tuple(by_id[order_id] for order_id in order_ids)
        success_count = sum(1 for result in results if result.success)
        error_count = len(results) - success_count
        if (
            response.summary.success_count != success_count
            or response.summary.error_count != error_count
        ):
            logger.warning(
                "invoice.bulk_summary_mismatch",
                reported_success=response.summary.success_count,
                reported_errors=response.summary.error_count,
                counted_success=success_count,
                counted_errors=error_count,
            )
        return BulkInvoiceOutcome(results, success_count, error_count)

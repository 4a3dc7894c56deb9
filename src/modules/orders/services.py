"""Order admin service layer (Use Cases).

Orchestrates the operator actions on orders.  Every action follows the
same shape:

1. Validate locally (engine / handler / dispatcher / scheduler).  Local
   validation errors are raised before any network call.
2. Claim the in-flight key for ``(order, action)``; a second click while
   the first call is pending raises ``MutationInFlight``.
3. Issue exactly one backend call.
4. On success, patch the ``OrderStore`` with the confirmed fields and
   publish the post-commit domain event (notification outbox).
   On failure, nothing is patched and the error propagates.

List queries go through the coordinator's latest-wins guard.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, List, Optional

import structlog

from modules.core.correlation import correlation_scope, current_correlation_id
from modules.core.exceptions import GatewayError
from modules.orders.constants import (
    DEFAULT_SORT_BY,
    DeliveryDateType,
    MutationKind,
    OrderStatus,
    SortOrder,
)
from modules.orders.coordinator import QueryResult, RequestCoordinator
from modules.orders.delivery import DeliveryScheduler
from modules.orders.dtos import (
    DeliverySelection,
    DeliveryUpdatePayload,
    ListOrdersQuery,
    OrderDTO,
    OrderListResponse,
    StatusUpdatePayload,
)
from modules.orders.events import (
    DeliveryRescheduled,
    InvoiceSent,
    OrderRejected,
    OrderStatusUpdated,
)
from modules.orders.exceptions import InvalidOrderStatus
from modules.orders.handlers import register_notification_handlers
from modules.orders.invoicing import BulkInvoiceOutcome, InvoiceDispatcher
from modules.orders.outbox import NotificationOutbox
from modules.orders.rejection import RejectionHandler
from modules.orders.statistics import OrderStatisticsDTO, compute_order_statistics
from modules.orders.store import OrderStore
from modules.orders.transitions import (
    ProgressOption,
    StatusTransitionEngine,
    TransitionPlan,
    describe_skip,
)
from shared.infrastructure.bus import InMemoryEventBus

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import IOrderGateway
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StatusChangeResult:
    """What the operator sees after a confirmed status change."""

    order: Optional[OrderDTO]
    plan: TransitionPlan
    payload: StatusUpdatePayload

    @property
    def disclosure(self) -> str:
        return describe_skip(self.plan)


class OrderAdminService:
    """Application service for the order admin use-cases.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        gateway: IOrderGateway,
        store: Optional[OrderStore] = None,
        scheduler: Optional[DeliveryScheduler] = None,
        event_bus: Optional[IEventBus] = None,
        outbox: Optional[NotificationOutbox] = None,
        page_size: int = 20,
    ) -> None:
        self._gateway = gateway
        self.store = store if store is not None else OrderStore()
        self.coordinator = RequestCoordinator(self.store)
        self._scheduler = scheduler or DeliveryScheduler()
        self._engine = StatusTransitionEngine()
        self._rejections = RejectionHandler()
        self._invoices = InvoiceDispatcher()
        self.outbox = outbox if outbox is not None else NotificationOutbox()
        if event_bus is None:
            event_bus = InMemoryEventBus()
            register_notification_handlers(event_bus, self.outbox)
        self._bus = event_bus
        self._page_size = page_size

    @classmethod
    def from_settings(cls) -> OrderAdminService:
        """Wire the service against the configured HTTP backend."""
        from config import settings
        from modules.orders.repositories.http_gateway import OrderHttpGateway

        return cls(
            gateway=OrderHttpGateway.from_settings(),
            scheduler=DeliveryScheduler(time_zone=settings.TIME_ZONE),
            page_size=settings.DEFAULT_PAGE_SIZE,
        )

    # ------------------------------------------------------------------
    # Status progression
    # ------------------------------------------------------------------

    def progress_options(self, order_id: str) -> List[ProgressOption]:
        order = self.store.get(order_id)
        return self._engine.progress_options(order.status)

    def plan_status_update(self, order_id: str, target: OrderStatus) -> TransitionPlan:
        """Classify a requested transition so the caller can ask for input."""
        order = self.store.get(order_id)
        return self._engine.classify(order.status, OrderStatus(target))

    async def update_status(
        self,
        order_id: str,
        target: OrderStatus,
        delivery: Optional[DeliverySelection] = None,
        confirmed_skips: Optional[Iterable[OrderStatus]] = None,
    ) -> StatusChangeResult:
        """Move an order forward in the progression.

        *confirmed_skips* must name every skipped stage of a skip-ahead.
        *delivery* is required when the target is ``in_transit``; it is
        resolved at commit time and tagged as not manually set.

        Raises:
            OrderNotFound: order is not in the store.
            InvalidOrderStatus: the transition is illegal.
            SkipNotConfirmed / DeliveryRequired / MissingDeliveryDate:
                required input is missing.
            MutationInFlight: a status update for this order is pending.
            GatewayError: the backend call failed.
        """
        with correlation_scope(current_correlation_id() or None):
            order = self.store.get(order_id)
            plan = self._engine.classify(order.status, OrderStatus(target))
            log = logger.bind(
                order_id=order_id,
                current_status=order.status.value,
                new_status=plan.target.value,
                kind=plan.kind.value,
            )
            if not plan.is_legal:
                log.warning("order.invalid_transition")
                raise InvalidOrderStatus(
                    f"Cannot transition from {order.status.value} to "
                    f"{plan.target.value}."
                )

            delivery_info = None
            if plan.requires_delivery and delivery is not None:
                delivery_info = self._scheduler.resolve_selection(delivery, manual=False)

            payload = self._engine.build_payload(
                plan, delivery=delivery_info, confirmed_skips=confirmed_skips
            )

            async with self.coordinator.mutation(order_id, MutationKind.STATUS_UPDATE):
                log.info("order.status_update_started")
                try:
                    response = await self._gateway.update_status(order_id, payload)
                except GatewayError as exc:
                    log.warning("order.status_update_failed", error=str(exc))
                    raise

            updated = self.store.apply_status_update(
                order_id,
                response.order,
                delivery=payload.delivery,
                requested_status=payload.status,
            )
            log.info(
                "order.status_updated",
                skipped_statuses=[s.value for s in plan.skipped],
            )
            self._bus.publish(
                OrderStatusUpdated(
                    aggregate_id=order_id,
                    old_status=order.status.value,
                    new_status=plan.target.value,
                    skipped_statuses=tuple(s.value for s in plan.skipped),
                )
            )
            return StatusChangeResult(order=updated, plan=plan, payload=payload)

    # ------------------------------------------------------------------
    # Rejection
    # ------------------------------------------------------------------

    async def reject_order(self, order_id: str, reason: str) -> Optional[OrderDTO]:
        """Reject an order with a reason.  Irreversible.

        Raises:
            MissingRejectionReason: *reason* is blank.
            InvalidOrderStatus: the order is rejected or invoiced.
            MutationInFlight: a rejection for this order is pending.
            GatewayError: the backend call failed.
        """
        with correlation_scope(current_correlation_id() or None):
            order = self.store.get(order_id)
            payload = self._rejections.reject(order, reason)
            log = logger.bind(order_id=order_id, current_status=order.status.value)

            async with self.coordinator.mutation(order_id, MutationKind.REJECTION):
                log.info("order.rejection_started")
                try:
                    response = await self._gateway.reject(order_id, payload)
                except GatewayError as exc:
                    log.warning("order.rejection_failed", error=str(exc))
                    raise

            updated = self.store.apply_rejection(order_id, response.order)
            log.info("order.rejected")
            self._bus.publish(OrderRejected(aggregate_id=order_id, reason=payload.reason))
            return updated

    # ------------------------------------------------------------------
    # Invoicing
    # ------------------------------------------------------------------

    async def send_invoice(self, order_id: str) -> str:
        """Send the invoice for one order and return the invoice number.

        Raises:
            InvalidOrderStatus: the order is not invoiceable or already invoiced.
            MutationInFlight: an invoice for this order is pending.
            GatewayError: the backend call failed.
        """
        with correlation_scope(current_correlation_id() or None):
            order = self.store.get(order_id)
            self._invoices.validate(order)
            log = logger.bind(order_id=order_id)

            async with self.coordinator.mutation(order_id, MutationKind.INVOICE):
                log.info("order.invoice_started")
                try:
                    response = await self._gateway.send_invoice(order_id)
                except GatewayError as exc:
                    log.warning("order.invoice_failed", error=str(exc))
                    raise
                invoice_number = self._invoices.confirm(order_id, response)

            self.store.apply_invoice(order_id, invoice_number)
            log.info("order.invoice_sent", invoice_number=invoice_number)
            self._bus.publish(
                InvoiceSent(aggregate_id=order_id, invoice_number=invoice_number)
            )
            return invoice_number

    async def send_invoices(
        self, order_ids: Optional[Iterable[str]] = None
    ) -> BulkInvoiceOutcome:
        """Send invoices for a batch (the current selection by default).

        The batch is not atomic: successful entries are applied and
        deselected, failed ones are left untouched for a retry.

        Raises:
            EmptySelection: no order ids.
            MutationInFlight: an invoice for one of the orders is pending.
            GatewayError: the call as a whole failed; nothing was applied.
        """
        with correlation_scope(current_correlation_id() or None):
            if order_ids is None:
                selected = self.store.selected_ids
                order_ids = [o.id for o in self.store.orders if o.id in selected]
            ids = self._invoices.validate_selection(order_ids)
            log = logger.bind(order_count=len(ids))

            async with self.coordinator.bulk_mutation(ids, MutationKind.INVOICE):
                log.info("order.bulk_invoice_started")
                try:
                    response = await self._gateway.send_invoices_bulk(list(ids))
                except GatewayError as exc:
                    log.warning("order.bulk_invoice_request_failed", error=str(exc))
                    raise
                outcome = self._invoices.reconcile(ids, response)

            for result in outcome.succeeded:
                if result.invoice_number:
                    self.store.apply_invoice(result.order_id, result.invoice_number)
                self._bus.publish(
                    InvoiceSent(
                        aggregate_id=result.order_id,
                        invoice_number=result.invoice_number or "",
                    )
                )
            self.store.deselect(r.order_id for r in outcome.succeeded)

            if outcome.error_count:
                log.warning(
                    "order.bulk_invoice_partial"
                    if outcome.success_count
                    else "order.bulk_invoice_failed",
                    success_count=outcome.success_count,
                    error_count=outcome.error_count,
                    failed_order_ids=[r.order_id for r in outcome.failed],
                )
            else:
                log.info("order.bulk_invoice_sent", success_count=outcome.success_count)
            return outcome

    # ------------------------------------------------------------------
    # Delivery edit
    # ------------------------------------------------------------------

    async def update_delivery(
        self,
        order_id: str,
        selection: DeliverySelection,
        reason: str = "",
    ) -> Optional[OrderDTO]:
        """Edit the delivery block of an order without changing its status.

        Raises:
            InvalidOrderStatus: the order is read-only.
            MissingDeliveryDate / InvalidDeliveryDate: bad custom date.
            MutationInFlight: a delivery edit for this order is pending.
            GatewayError: the backend call failed.
        """
        with correlation_scope(current_correlation_id() or None):
            order = self.store.get(order_id)
            if order.is_read_only:
                raise InvalidOrderStatus(
                    f"Cannot edit delivery of order {order.order_number} in status "
                    f"{order.status.value}."
                )
            resolved = self._scheduler.resolve_selection(selection, manual=True)
            custom_date = None
            if resolved.delivery_date_type is DeliveryDateType.CUSTOM:
                custom_date = resolved.expected_delivery.date()
            payload = DeliveryUpdatePayload(
                delivery_date_type=resolved.delivery_date_type,
                custom_delivery_date=custom_date,
                delivery_time_slot=resolved.delivery_time_slot,
                reason=reason.strip(),
            )
            log = logger.bind(order_id=order_id, date_type=payload.delivery_date_type.value)

            async with self.coordinator.mutation(order_id, MutationKind.DELIVERY_EDIT):
                log.info("order.delivery_update_started")
                try:
                    response = await self._gateway.update_delivery(order_id, payload)
                except GatewayError as exc:
                    log.warning("order.delivery_update_failed", error=str(exc))
                    raise

            updated = self.store.apply_delivery_update(
                order_id, response.order, response.new_delivery
            )
            log.info(
                "order.delivery_updated",
                expected_delivery=response.new_delivery.expected_delivery.isoformat(),
            )
            self._bus.publish(
                DeliveryRescheduled(
                    aggregate_id=order_id,
                    expected_delivery=response.new_delivery.expected_delivery,
                    delivery_time_slot=response.new_delivery.delivery_time_slot.value,
                    reason=payload.reason,
                )
            )
            return updated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def load_orders(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        sort_by: Optional[str] = None,
        sort_order: SortOrder = SortOrder.DESC,
    ) -> QueryResult[OrderListResponse]:
        """Load one page of orders; only the latest issued load is applied."""
        query = ListOrdersQuery(
            page=page,
            limit=limit or self._page_size,
            search=(search or "").strip() or None,
            status=status,
            sort_by=sort_by or DEFAULT_SORT_BY,
            sort_order=sort_order,
        )
        return await self._run_listing(query)

    async def refresh(self) -> QueryResult[OrderListResponse]:
        """Re-issue the last applied query (or the first page)."""
        query = self.store.query or ListOrdersQuery(limit=self._page_size)
        return await self._run_listing(query)

    def statistics(self, now: Optional[datetime] = None) -> OrderStatisticsDTO:
        return compute_order_statistics(self.store.orders, now=now)

    async def _run_listing(self, query: ListOrdersQuery) -> QueryResult[OrderListResponse]:
        with correlation_scope(current_correlation_id() or None):
            logger.info(
                "order.list_requested",
                page=query.page,
                status=query.status.value if query.status else None,
                search=query.search,
            )
            return await self.coordinator.run_query(
                lambda: self._gateway.list_orders(query),
                lambda generation, response: self.store.replace_listing(
                    generation, response, query
                ),
            )

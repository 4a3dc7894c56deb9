"""Event handlers for Orders domain events."""

from __future__ import annotations

import structlog

from modules.orders.events import (
    DeliveryRescheduled,
    InvoiceSent,
    OrderRejected,
    OrderStatusUpdated,
)
from modules.orders.outbox import NotificationOutbox
from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)

NOTIFYING_EVENTS = (OrderStatusUpdated, OrderRejected, InvoiceSent, DeliveryRescheduled)


class NotificationRequestedHandler(IEventHandler[DomainEvent]):
    """Records the customer-notification obligation of a confirmed mutation."""

    def __init__(self, outbox: NotificationOutbox) -> None:
        self._outbox = outbox

    def handle(self, event: DomainEvent) -> None:
        self._outbox.record(event)


class SkippedStagesHandler(IEventHandler[OrderStatusUpdated]):
    """Logs skip-ahead transitions; skipped stages are never persisted one by one."""

    def handle(self, event: OrderStatusUpdated) -> None:
        if not event.skipped_statuses:
            return
        logger.info(
            f"Order {event.aggregate_id} skipped {', '.join(event.skipped_statuses)}",
            order_id=event.aggregate_id,
            new_status=event.new_status,
            skipped_statuses=list(event.skipped_statuses),
        )


def register_notification_handlers(bus: IEventBus, outbox: NotificationOutbox) -> None:
    """Subscribe the outbox to every event that carries a notification."""
    notification_handler = NotificationRequestedHandler(outbox)
    for event_class in NOTIFYING_EVENTS:
        bus.subscribe(event_class, notification_handler)
    bus.subscribe(OrderStatusUpdated, SkippedStagesHandler())

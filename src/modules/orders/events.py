"""Domain events for the Orders bounded context.

Published after a mutation is confirmed by the backend.  Each one stands
for a customer notification the backend was asked to send.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderStatusUpdated(DomainEvent):
    """Raised when an order moves forward in the progression."""

    old_status: str = ""
    new_status: str = ""
    skipped_statuses: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OrderRejected(DomainEvent):
    """Raised when an order is rejected."""

    reason: str = ""


@dataclass(frozen=True)
class InvoiceSent(DomainEvent):
    """Raised when an invoice is sent for one order."""

    invoice_number: str = ""


@dataclass(frozen=True)
class DeliveryRescheduled(DomainEvent):
    """Raised when the delivery block is edited outside a status change."""

    expected_delivery: Optional[datetime] = None
    delivery_time_slot: str = ""
    reason: str = ""

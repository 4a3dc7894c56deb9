"""Order domain constants.

Defines the status progression, the absorbing ``rejected`` side-state,
delivery selectors and time slots, and the mutation kinds guarded by the
in-flight registry.
"""

from enum import Enum
from typing import Dict, FrozenSet, Tuple


class OrderStatus(str, Enum):
    ORDER_PLACED = "order_placed"
    ORDER_CONFIRMED = "order_confirmed"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    INVOICED = "invoiced"
    REJECTED = "rejected"


# Fixed forward progression.  ``REJECTED`` is not part of it.
STATUS_PROGRESSION: Tuple[OrderStatus, ...] = (
    OrderStatus.ORDER_PLACED,
    OrderStatus.ORDER_CONFIRMED,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
    OrderStatus.INVOICED,
)

STATUS_INDEX: Dict[OrderStatus, int] = {
    status: index for index, status in enumerate(STATUS_PROGRESSION)
}

# Orders in these states are permanently read-only.
TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.INVOICED, OrderStatus.REJECTED}
)

INVOICEABLE_STATES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.ORDER_CONFIRMED, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED}
)

# Landing on this status requires a concrete delivery block.
DELIVERY_REQUIRED_STATUS = OrderStatus.IN_TRANSIT

# Statuses that no longer count as "pending" in the order statistics.
SETTLED_STATES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.INVOICED, OrderStatus.REJECTED}
)

STATUS_LABELS: Dict[OrderStatus, str] = {
    OrderStatus.ORDER_PLACED: "Ordre afgivet",
    OrderStatus.ORDER_CONFIRMED: "Bekræftet",
    OrderStatus.IN_TRANSIT: "Pakket",
    OrderStatus.DELIVERED: "Leveret",
    OrderStatus.INVOICED: "Faktureret",
    OrderStatus.REJECTED: "Afvist",
}


class DeliveryDateType(str, Enum):
    TODAY = "today"
    TOMORROW = "tomorrow"
    DAY_AFTER_TOMORROW = "day_after_tomorrow"
    CUSTOM = "custom"


# Calendar offsets (in days) for the relative selectors.
DELIVERY_DAY_OFFSETS: Dict[DeliveryDateType, int] = {
    DeliveryDateType.TODAY: 0,
    DeliveryDateType.TOMORROW: 1,
    DeliveryDateType.DAY_AFTER_TOMORROW: 2,
}


class DeliveryTimeSlot(str, Enum):
    EARLY_MORNING = "06:00-09:00"
    MORNING = "09:00-12:00"
    AFTERNOON = "12:00-15:00"
    LATE_AFTERNOON = "15:00-18:00"

    @property
    def bounds(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """Return ``((start_hour, start_minute), (end_hour, end_minute))``."""
        start, end = self.value.split("-")
        start_h, start_m = start.split(":")
        end_h, end_m = end.split(":")
        return (int(start_h), int(start_m)), (int(end_h), int(end_m))


class MutationKind(str, Enum):
    STATUS_UPDATE = "status_update"
    REJECTION = "rejection"
    INVOICE = "invoice"
    DELIVERY_EDIT = "delivery_edit"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


DEFAULT_SORT_BY = "placedAt"

RECENT_ORDERS_LIMIT = 3

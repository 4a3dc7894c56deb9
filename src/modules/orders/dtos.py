"""Order DTOs for the order admin core.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the backend gateway, the local order
store and the service layer.  DTOs are immutable (``frozen=True``);
the store replaces them with ``model_copy(update=...)`` when the backend
confirms a change.

Wire names are camelCase (``lastUpdated``, ``isManuallySet``); Python
code uses the snake_case field names.

- ``DeliveryInfo`` / ``EstimatedRange``: delivery block of an order.
- ``OrderDTO``: cached order summary.
- ``StatusUpdatePayload``, ``RejectionPayload``, ``DeliveryUpdatePayload``:
  mutation request bodies.
- ``ListOrdersQuery``: list query parameters.
- ``*Response``: backend answers for each call.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from modules.orders.constants import (
    DEFAULT_SORT_BY,
    DELIVERY_REQUIRED_STATUS,
    TERMINAL_STATES,
    DeliveryDateType,
    DeliveryTimeSlot,
    OrderStatus,
    SortOrder,
)


class WireModel(BaseModel):
    """Base for every DTO exchanged with the backend."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> Dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Order summary
# ---------------------------------------------------------------------------


class EstimatedRange(WireModel):
    earliest: datetime
    latest: datetime


class DeliveryInfo(WireModel):
    """Delivery block of an order.

    ``is_manually_set`` is a provenance tag: ``True`` when the block was last
    written by a standalone delivery edit, ``False`` when it was derived
    during a status transition.
    """

    expected_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    delivery_time_slot: Optional[DeliveryTimeSlot] = None
    delivery_date_type: Optional[DeliveryDateType] = None
    is_manually_set: bool = False
    estimated_range: Optional[EstimatedRange] = None


class CustomerRef(WireModel):
    """Read-only customer reference carried by an order."""

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    company_name: Optional[str] = None
    email: Optional[str] = None


class OrderDTO(WireModel):
    """Cached order summary, as listed by the backend."""

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    order_number: str
    status: OrderStatus
    placed_at: datetime
    total_amount: Decimal
    customer: Optional[CustomerRef] = None
    is_invoiced: bool = False
    invoice_number: Optional[str] = None
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None
    last_updated: datetime
    delivery: Optional[DeliveryInfo] = None

    @property
    def is_read_only(self) -> bool:
        """``True`` once the order is rejected or invoiced."""
        return self.status in TERMINAL_STATES


class PaginationDTO(WireModel):
    current_page: int = 1
    limit: int
    total_orders: int = 0
    total_pages: int = 0


class DeliverySelection(WireModel):
    """Symbolic delivery choice made by the operator.

    ``custom_date`` accepts a ``date`` or an ISO ``YYYY-MM-DD`` string and is
    only consulted when ``date_type`` is ``custom``.
    """

    date_type: DeliveryDateType
    time_slot: DeliveryTimeSlot
    custom_date: Union[date, str, None] = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class StatusUpdatePayload(WireModel):
    """Commit payload for a forward status transition.

    Validates:
    - ``send_notification`` is always ``True``.
    - Landing on ``in_transit`` carries a concrete ``expected_delivery``.
    """

    status: OrderStatus
    skipped_statuses: Tuple[OrderStatus, ...] = ()
    send_notification: Literal[True] = True
    delivery: Optional[DeliveryInfo] = None

    @model_validator(mode="after")
    def delivery_present_for_transit(self):
        if self.status == DELIVERY_REQUIRED_STATUS and (
            self.delivery is None or self.delivery.expected_delivery is None
        ):
            raise ValueError(
                "A concrete expected delivery is required when moving to in_transit."
            )
        return self


class RejectionPayload(WireModel):
    reason: str


class DeliveryUpdatePayload(WireModel):
    delivery_date_type: DeliveryDateType
    custom_delivery_date: Optional[date] = None
    delivery_time_slot: DeliveryTimeSlot
    reason: str = ""


class ListOrdersQuery(WireModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(ge=1)
    search: Optional[str] = None
    status: Optional[OrderStatus] = None
    sort_by: str = DEFAULT_SORT_BY
    sort_order: SortOrder = SortOrder.DESC


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ConfirmedOrderFields(WireModel):
    """The subset of order fields the backend echoes after a mutation."""

    status: Optional[OrderStatus] = None
    last_updated: datetime
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None
    delivery: Optional[DeliveryInfo] = None


class StatusUpdateResponse(WireModel):
    order: ConfirmedOrderFields


class RejectionResponse(WireModel):
    order: ConfirmedOrderFields


class InvoiceResponse(WireModel):
    success: bool
    invoice_number: Optional[str] = None


class BulkInvoiceResult(WireModel):
    order_id: str
    success: bool
    invoice_number: Optional[str] = None
    error: Optional[str] = None


class BulkInvoiceSummary(WireModel):
    success_count: int
    error_count: int


class BulkInvoiceResponse(WireModel):
    success: bool
    summary: BulkInvoiceSummary
    results: List[BulkInvoiceResult]


class ConfirmedDelivery(WireModel):
    expected_delivery: datetime
    delivery_time_slot: DeliveryTimeSlot
    delivery_date_type: DeliveryDateType


class DeliveryUpdateResponse(WireModel):
    order: ConfirmedOrderFields
    new_delivery: ConfirmedDelivery


class OrderListResponse(WireModel):
    orders: List[OrderDTO]
    pagination: PaginationDTO

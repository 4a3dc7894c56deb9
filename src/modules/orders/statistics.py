"""Dashboard statistics computed from the cached order list."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict

from modules.orders.constants import (
    RECENT_ORDERS_LIMIT,
    SETTLED_STATES,
    STATUS_LABELS,
)
from modules.orders.dtos import OrderDTO
from modules.orders.order_number import parse_order_number


class RecentOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    order_number: str
    display_number: str
    placed_at: datetime
    amount: Decimal
    status_label: str


class OrderStatisticsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_orders: int
    monthly_spent: Decimal
    pending_orders: int
    last_order_date: Optional[datetime]
    recent_orders: List[RecentOrderDTO]


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def compute_order_statistics(
    orders: Iterable[OrderDTO], now: Optional[datetime] = None
) -> OrderStatisticsDTO:
    """Summarize *orders*.

    ``monthly_spent`` sums orders placed since the first day of *now*'s
    month, in *now*'s time zone.  Rejected orders do not count as pending.
    """
    orders = list(orders)
    now = _aware(now or datetime.now(timezone.utc))
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    monthly_spent = sum(
        (o.total_amount for o in orders if _aware(o.placed_at) >= month_start),
        Decimal("0"),
    )
    pending_orders = sum(1 for o in orders if o.status not in SETTLED_STATES)

    newest_first = sorted(orders, key=lambda o: _aware(o.placed_at), reverse=True)
    recent = [
        RecentOrderDTO(
            id=o.id,
            order_number=o.order_number,
            display_number=parse_order_number(o.order_number).sequence_number,
            placed_at=o.placed_at,
            amount=o.total_amount,
            status_label=STATUS_LABELS[o.status],
        )
        for o in newest_first[:RECENT_ORDERS_LIMIT]
    ]

    return OrderStatisticsDTO(
        total_orders=len(orders),
        monthly_spent=monthly_spent,
        pending_orders=pending_orders,
        last_order_date=newest_first[0].placed_at if newest_first else None,
        recent_orders=recent,
    )

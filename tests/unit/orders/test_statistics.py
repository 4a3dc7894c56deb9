"""Unit tests for order statistics and order number parsing."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from modules.orders.constants import OrderStatus
from modules.orders.order_number import parse_order_number
from modules.orders.statistics import compute_order_statistics

pytestmark = pytest.mark.unit

CPH = ZoneInfo("Europe/Copenhagen")


class TestComputeOrderStatistics:
    def test_empty(self):
        stats = compute_order_statistics([], now=datetime(2026, 3, 15, tzinfo=CPH))
        assert stats.total_orders == 0
        assert stats.monthly_spent == Decimal("0")
        assert stats.last_order_date is None
        assert stats.recent_orders == []

    def test_summary(self, make_order):
        orders = [
            make_order(
                "feb",
                status=OrderStatus.INVOICED,
                placed_at=datetime(2026, 2, 27, tzinfo=timezone.utc),
                total_amount=Decimal("500.00"),
            ),
            make_order(
                "mar-1",
                status=OrderStatus.ORDER_PLACED,
                placed_at=datetime(2026, 3, 2, tzinfo=timezone.utc),
                total_amount=Decimal("100.00"),
            ),
            make_order(
                "mar-2",
                status=OrderStatus.IN_TRANSIT,
                placed_at=datetime(2026, 3, 9, tzinfo=timezone.utc),
                total_amount=Decimal("250.50"),
            ),
            make_order(
                "mar-3",
                status=OrderStatus.REJECTED,
                placed_at=datetime(2026, 3, 5, tzinfo=timezone.utc),
                total_amount=Decimal("75.00"),
            ),
        ]

        stats = compute_order_statistics(orders, now=datetime(2026, 3, 15, tzinfo=CPH))

        assert stats.total_orders == 4
        assert stats.monthly_spent == Decimal("425.50")
        assert stats.pending_orders == 2
        assert stats.last_order_date == datetime(2026, 3, 9, tzinfo=timezone.utc)
        assert [r.id for r in stats.recent_orders] == ["mar-2", "mar-3", "mar-1"]
        assert stats.recent_orders[0].status_label == "Pakket"
        assert stats.recent_orders[0].order_number == "20260309-101500-cust42-0003"
        assert stats.recent_orders[0].display_number == "#0003"


class TestParseOrderNumber:
    def test_standard_format(self):
        parsed = parse_order_number("20260309-101500-cust42-0007")
        assert parsed.formatted_date == "09/03/2026"
        assert parsed.formatted_time == "10:15:00"
        assert parsed.customer_id == "cust42"
        assert parsed.sequence_number == "#0007"

    def test_customer_id_with_dashes(self):
        parsed = parse_order_number("20260309-101500-acme-dk-0001")
        assert parsed.customer_id == "acme-dk"
        assert parsed.sequence_number == "#0001"

    @pytest.mark.parametrize("value", ["ORD-1234", "legacy", ""])
    def test_fallback(self, value):
        parsed = parse_order_number(value)
        assert parsed.full_order_number == value
        assert parsed.sequence_number == value
        assert parsed.formatted_date == "N/A"
        assert parsed.formatted_time == "N/A"

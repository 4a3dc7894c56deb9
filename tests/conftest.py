from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from config import settings  # noqa: F401  (configures structlog)
from modules.orders.constants import OrderStatus
from modules.orders.delivery import DeliveryScheduler
from modules.orders.dtos import OrderDTO
from modules.orders.repositories.interfaces import IOrderGateway
from modules.orders.services import OrderAdminService
from modules.orders.store import OrderStore
from tests.factories import FIXED_NOW, LAST_UPDATED, build_listing


@pytest.fixture()
def make_order():
    """Factory for cached order summaries."""
    counter = {"n": 0}

    def _make(order_id=None, status=OrderStatus.ORDER_PLACED, **overrides):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "id": order_id or f"ord-{n}",
            "order_number": f"20260309-101500-cust42-{n:04d}",
            "status": status,
            "placed_at": datetime(2026, 3, 9, 10, 15, tzinfo=timezone.utc),
            "total_amount": Decimal("1250.00"),
            "last_updated": LAST_UPDATED,
        }
        data.update(overrides)
        return OrderDTO(**data)

    return _make


@pytest.fixture()
def store():
    return OrderStore()


@pytest.fixture()
def load_store(store):
    """Fill the store with *orders* as if a list query had just been applied."""

    def _load(*orders):
        store.replace_listing(store.next_generation(), build_listing(orders))
        return store

    return _load


@pytest.fixture()
def gateway():
    return AsyncMock(spec=IOrderGateway)


@pytest.fixture()
def scheduler():
    return DeliveryScheduler(time_zone="Europe/Copenhagen", clock=lambda: FIXED_NOW)


@pytest.fixture()
def service(gateway, store, scheduler):
    return OrderAdminService(gateway, store=store, scheduler=scheduler)

"""Unit tests for the Order status transition engine.

Covers:
- Classification of every (current, target) pair of the progression.
- Escalation of ``in_transit`` targets, keeping the skipped list.
- ``rejected`` is neither a legal source nor a legal target.
- Commit payload construction and its local validation errors.
- Progress options and skip disclosure copy.
"""

from __future__ import annotations

from datetime import datetime
from itertools import product
from zoneinfo import ZoneInfo

import pytest

from modules.orders.constants import (
    STATUS_PROGRESSION,
    DeliveryDateType,
    DeliveryTimeSlot,
    OrderStatus,
)
from modules.orders.dtos import DeliveryInfo
from modules.orders.exceptions import (
    DeliveryRequired,
    InvalidOrderStatus,
    LocalValidationError,
    SkipNotConfirmed,
)
from modules.orders.transitions import (
    StatusTransitionEngine,
    TransitionKind,
    describe_skip,
)

pytestmark = pytest.mark.unit

CPH = ZoneInfo("Europe/Copenhagen")

ALL_PAIRS = list(product(enumerate(STATUS_PROGRESSION), repeat=2))
FORWARD_PAIRS = [(c, t) for c, t in ALL_PAIRS if t[0] > c[0]]
BACKWARD_OR_REPEAT_PAIRS = [(c, t) for c, t in ALL_PAIRS if t[0] <= c[0]]


@pytest.fixture()
def engine():
    return StatusTransitionEngine()


@pytest.fixture()
def delivery():
    return DeliveryInfo(
        expected_delivery=datetime(2026, 3, 11, tzinfo=CPH),
        delivery_time_slot=DeliveryTimeSlot.MORNING,
        delivery_date_type=DeliveryDateType.TOMORROW,
    )


# ===========================================================================
# classify
# ===========================================================================


class TestClassifyAllPairs:
    @pytest.mark.parametrize(("current", "target"), BACKWARD_OR_REPEAT_PAIRS)
    def test_backward_or_repeat_is_illegal(self, engine, current, target):
        (_, current_status), (_, target_status) = current, target
        plan = engine.classify(current_status, target_status)
        assert plan.kind is TransitionKind.ILLEGAL
        assert not plan.is_legal

    @pytest.mark.parametrize(("current", "target"), FORWARD_PAIRS)
    def test_forward_skipped_is_open_interval(self, engine, current, target):
        (i, current_status), (j, target_status) = current, target
        plan = engine.classify(current_status, target_status)
        assert plan.is_legal
        assert plan.skipped == STATUS_PROGRESSION[i + 1 : j]

    @pytest.mark.parametrize(("current", "target"), FORWARD_PAIRS)
    def test_forward_kind(self, engine, current, target):
        (i, current_status), (j, target_status) = current, target
        plan = engine.classify(current_status, target_status)
        if target_status is OrderStatus.IN_TRANSIT:
            expected = TransitionKind.REQUIRES_DELIVERY
        elif j == i + 1:
            expected = TransitionKind.DIRECT_NEXT
        else:
            expected = TransitionKind.SKIP_AHEAD
        assert plan.kind is expected


class TestClassifyScenarios:
    def test_placed_to_confirmed_is_direct_next(self, engine):
        plan = engine.classify(OrderStatus.ORDER_PLACED, OrderStatus.ORDER_CONFIRMED)
        assert plan.kind is TransitionKind.DIRECT_NEXT
        assert plan.skipped == ()
        assert not plan.requires_delivery
        assert not plan.requires_confirmation

    def test_placed_to_delivered_skips_two_stages(self, engine):
        plan = engine.classify(OrderStatus.ORDER_PLACED, OrderStatus.DELIVERED)
        assert plan.kind is TransitionKind.SKIP_AHEAD
        assert plan.skipped == (OrderStatus.ORDER_CONFIRMED, OrderStatus.IN_TRANSIT)
        assert plan.requires_confirmation

    def test_jump_to_in_transit_keeps_skipped_list(self, engine):
        plan = engine.classify(OrderStatus.ORDER_PLACED, OrderStatus.IN_TRANSIT)
        assert plan.kind is TransitionKind.REQUIRES_DELIVERY
        assert plan.skipped == (OrderStatus.ORDER_CONFIRMED,)
        assert plan.requires_confirmation

    def test_confirmed_to_in_transit_requires_delivery(self, engine):
        plan = engine.classify(OrderStatus.ORDER_CONFIRMED, OrderStatus.IN_TRANSIT)
        assert plan.kind is TransitionKind.REQUIRES_DELIVERY
        assert plan.skipped == ()


class TestClassifyRejected:
    @pytest.mark.parametrize("status", STATUS_PROGRESSION)
    def test_rejected_is_never_a_target(self, engine, status):
        plan = engine.classify(status, OrderStatus.REJECTED)
        assert plan.kind is TransitionKind.ILLEGAL

    @pytest.mark.parametrize("status", STATUS_PROGRESSION)
    def test_rejected_order_cannot_move(self, engine, status):
        plan = engine.classify(OrderStatus.REJECTED, status)
        assert plan.kind is TransitionKind.ILLEGAL


# ===========================================================================
# build_payload
# ===========================================================================


class TestBuildPayload:
    def test_direct_next_payload(self, engine):
        plan = engine.classify(OrderStatus.ORDER_PLACED, OrderStatus.ORDER_CONFIRMED)
        payload = engine.build_payload(plan)
        assert payload.to_wire() == {
            "status": "order_confirmed",
            "skippedStatuses": [],
            "sendNotification": True,
        }

    def test_skip_ahead_requires_confirmation(self, engine):
        plan = engine.classify(OrderStatus.ORDER_PLACED, OrderStatus.DELIVERED)
        with pytest.raises(SkipNotConfirmed) as exc_info:
            engine.build_payload(plan, confirmed_skips=[OrderStatus.ORDER_CONFIRMED])
        assert exc_info.value.skipped == ("order_confirmed", "in_transit")
        assert isinstance(exc_info.value, LocalValidationError)

    def test_skip_ahead_confirmed_payload(self, engine):
        plan = engine.classify(OrderStatus.ORDER_PLACED, OrderStatus.DELIVERED)
        payload = engine.build_payload(plan, confirmed_skips=plan.skipped)
        assert payload.skipped_statuses == plan.skipped
        assert payload.send_notification is True
        assert payload.delivery is None

    def test_in_transit_without_delivery_is_rejected(self, engine):
        plan = engine.classify(OrderStatus.ORDER_CONFIRMED, OrderStatus.IN_TRANSIT)
        with pytest.raises(DeliveryRequired):
            engine.build_payload(plan)

    def test_in_transit_with_symbolic_delivery_is_rejected(self, engine):
        plan = engine.classify(OrderStatus.ORDER_CONFIRMED, OrderStatus.IN_TRANSIT)
        symbolic = DeliveryInfo(delivery_date_type=DeliveryDateType.TOMORROW)
        with pytest.raises(DeliveryRequired):
            engine.build_payload(plan, delivery=symbolic)

    def test_in_transit_payload_carries_delivery(self, engine, delivery):
        plan = engine.classify(OrderStatus.ORDER_CONFIRMED, OrderStatus.IN_TRANSIT)
        payload = engine.build_payload(plan, delivery=delivery)
        wire = payload.to_wire()
        assert wire["status"] == "in_transit"
        assert wire["delivery"]["expectedDelivery"] == "2026-03-11T00:00:00+01:00"
        assert wire["delivery"]["isManuallySet"] is False

    def test_delivery_ignored_when_not_required(self, engine, delivery):
        plan = engine.classify(OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED)
        payload = engine.build_payload(plan, delivery=delivery)
        assert payload.delivery is None

    def test_illegal_plan_raises(self, engine):
        plan = engine.classify(OrderStatus.DELIVERED, OrderStatus.ORDER_PLACED)
        with pytest.raises(InvalidOrderStatus):
            engine.build_payload(plan)


# ===========================================================================
# progress options / disclosure
# ===========================================================================


class TestProgressOptions:
    def test_options_from_placed(self, engine):
        options = engine.progress_options(OrderStatus.ORDER_PLACED)
        assert [o.status for o in options] == list(STATUS_PROGRESSION[1:])
        assert options[0].is_next and not options[0].skips_steps
        assert all(o.skips_steps and not o.is_next for o in options[1:])
        assert options[0].label == "Bekræftet"

    def test_options_from_delivered(self, engine):
        options = engine.progress_options(OrderStatus.DELIVERED)
        assert [o.status for o in options] == [OrderStatus.INVOICED]

    @pytest.mark.parametrize("status", [OrderStatus.INVOICED, OrderStatus.REJECTED])
    def test_read_only_orders_have_no_options(self, engine, status):
        assert engine.progress_options(status) == []


class TestDescribeSkip:
    def test_names_every_skipped_stage(self, engine):
        plan = engine.classify(OrderStatus.ORDER_PLACED, OrderStatus.DELIVERED)
        text = describe_skip(plan)
        assert "Bekræftet" in text
        assert "Pakket" in text
        assert "Leveret" in text

    def test_empty_for_direct_next(self, engine):
        plan = engine.classify(OrderStatus.ORDER_PLACED, OrderStatus.ORDER_CONFIRMED)
        assert describe_skip(plan) == ""

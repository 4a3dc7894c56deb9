"""Status transition engine.

Classifies a requested status change against the fixed progression
(``STATUS_PROGRESSION``) and builds the commit payload once every piece
of required input (skip confirmation, delivery block) is available.

Classification is pure and synchronous; it never raises.  Only
``build_payload`` raises, and only local validation errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from modules.orders.constants import (
    DELIVERY_REQUIRED_STATUS,
    STATUS_INDEX,
    STATUS_LABELS,
    STATUS_PROGRESSION,
    TERMINAL_STATES,
    OrderStatus,
)
from modules.orders.dtos import DeliveryInfo, StatusUpdatePayload
from modules.orders.exceptions import (
    DeliveryRequired,
    InvalidOrderStatus,
    SkipNotConfirmed,
)


class TransitionKind(str, Enum):
    ILLEGAL = "illegal"
    DIRECT_NEXT = "direct_next"
    SKIP_AHEAD = "skip_ahead"
    REQUIRES_DELIVERY = "requires_delivery"


@dataclass(frozen=True)
class TransitionPlan:
    """Result of ``StatusTransitionEngine.classify``.

    ``skipped`` is the open interval of the progression between ``current``
    and ``target``.  It survives the escalation to ``REQUIRES_DELIVERY`` so a
    jump that lands on ``in_transit`` still discloses what it skipped.
    """

    kind: TransitionKind
    current: OrderStatus
    target: OrderStatus
    skipped: Tuple[OrderStatus, ...] = field(default=())

    @property
    def is_legal(self) -> bool:
        return self.kind is not TransitionKind.ILLEGAL

    @property
    def requires_delivery(self) -> bool:
        return self.kind is TransitionKind.REQUIRES_DELIVERY

    @property
    def requires_confirmation(self) -> bool:
        return bool(self.skipped)


@dataclass(frozen=True)
class ProgressOption:
    """A forward target the operator may pick for an order."""

    status: OrderStatus
    label: str
    is_next: bool
    skips_steps: bool


class StatusTransitionEngine:
    """Forward-only order status state machine."""

    def classify(self, current: OrderStatus, target: OrderStatus) -> TransitionPlan:
        """Classify moving an order from *current* to *target*.

        ``rejected`` is outside the progression: it is never a legal target
        here (see ``RejectionHandler``) and an order already in it cannot move.
        """
        current_index = STATUS_INDEX.get(current)
        target_index = STATUS_INDEX.get(target)
        if (
            current_index is None
            or target_index is None
            or target_index <= current_index
        ):
            return TransitionPlan(TransitionKind.ILLEGAL, current, target)

        skipped = STATUS_PROGRESSION[current_index + 1 : target_index]
        kind = TransitionKind.SKIP_AHEAD if skipped else TransitionKind.DIRECT_NEXT
        if target == DELIVERY_REQUIRED_STATUS:
            kind = TransitionKind.REQUIRES_DELIVERY
        return TransitionPlan(kind, current, target, skipped)

    def build_payload(
        self,
        plan: TransitionPlan,
        delivery: Optional[DeliveryInfo] = None,
        confirmed_skips: Optional[Iterable[OrderStatus]] = None,
    ) -> StatusUpdatePayload:
        """Build the commit payload for a classified transition.

        Raises:
            InvalidOrderStatus: the plan is illegal.
            SkipNotConfirmed: *confirmed_skips* does not name every skipped stage.
            DeliveryRequired: the target needs a concrete delivery block.
        """
        if not plan.is_legal:
            raise InvalidOrderStatus(
                f"Cannot transition from {plan.current.value} to {plan.target.value}."
            )

        if plan.requires_confirmation:
            confirmed = set(confirmed_skips or ())
            if not set(plan.skipped) <= confirmed:
                raise SkipNotConfirmed(status.value for status in plan.skipped)

        if plan.requires_delivery and (
            delivery is None or delivery.expected_delivery is None
        ):
            raise DeliveryRequired(
                f"Select a delivery date and time slot before moving to "
                f"{plan.target.value}."
            )

        return StatusUpdatePayload(
            status=plan.target,
            skipped_statuses=plan.skipped,
            send_notification=True,
            delivery=delivery if plan.requires_delivery else None,
        )

    def progress_options(self, current: OrderStatus) -> List[ProgressOption]:
        """Return every legal forward target for an order in *current*."""
        if current in TERMINAL_STATES:
            return []
        options = []
        for status in STATUS_PROGRESSION:
            plan = self.classify(current, status)
            if not plan.is_legal:
                continue
            options.append(
                ProgressOption(
                    status=status,
                    label=STATUS_LABELS[status],
                    is_next=not plan.skipped,
                    skips_steps=bool(plan.skipped),
                )
            )
        return options


def describe_skip(plan: TransitionPlan) -> str:
    """Operator copy disclosing the stages a transition skips.

    Returns an empty string for transitions that skip nothing.
    """
    if not plan.skipped:
        return ""
    names = ", ".join(STATUS_LABELS[status] for status in plan.skipped)
    return (
        f"Moving to {STATUS_LABELS[plan.target]} also completes: {names}. "
        "The customer is notified of every skipped stage."
    )

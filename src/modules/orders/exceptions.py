"""Order domain exceptions.

Raised by the order admin core when business rules are violated.
Local validation errors are raised **before** any network call; the
caller catches them and shows them to the operator immediately.
"""

from __future__ import annotations

from typing import Iterable


class OrderNotFound(Exception):
    """The requested order is not present in the local order store."""


class InvalidOrderStatus(Exception):
    """The order's current status does not allow the requested mutation."""


class MutationInFlight(Exception):
    """The same action is already pending for this order. Please wait."""

    def __init__(self, order_id: str, kind: str) -> None:
        super().__init__(
            f"A {kind} request for order {order_id} is already in progress. "
            "Please wait."
        )
        self.order_id = order_id
        self.kind = kind


# ---------------------------------------------------------------------------
# Local validation
# ---------------------------------------------------------------------------


class LocalValidationError(Exception):
    """Operator input is incomplete; nothing was sent to the backend."""


class MissingRejectionReason(LocalValidationError):
    """A rejection was requested without a reason."""


class MissingDeliveryDate(LocalValidationError):
    """A custom delivery date type was chosen without a date."""


class InvalidDeliveryDate(LocalValidationError):
    """The custom delivery date could not be parsed."""


class EmptySelection(LocalValidationError):
    """A bulk action was requested with no orders selected."""


class DeliveryRequired(LocalValidationError):
    """The target status requires delivery information before committing."""


class SkipNotConfirmed(LocalValidationError):
    """A skip-ahead transition was not confirmed for every skipped stage."""

    def __init__(self, skipped: Iterable[str]) -> None:
        self.skipped = tuple(skipped)
        super().__init__(
            "Confirm the skipped stages before committing: "
            + ", ".join(self.skipped)
        )

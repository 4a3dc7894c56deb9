"""Delivery scheduler.

Resolves a symbolic delivery selection (relative day or explicit date,
plus a time slot) into a concrete ``DeliveryInfo``.  Relative selectors
are counted from the moment of commit, in the configured time zone, and
normalized to midnight.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, Union
from zoneinfo import ZoneInfo

import structlog

from modules.orders.constants import (
    DELIVERY_DAY_OFFSETS,
    DeliveryDateType,
    DeliveryTimeSlot,
)
from modules.orders.dtos import DeliveryInfo, DeliverySelection, EstimatedRange
from modules.orders.exceptions import InvalidDeliveryDate, MissingDeliveryDate

logger = structlog.get_logger(__name__)


class DeliveryScheduler:
    """Turns a ``DeliverySelection`` into a concrete ``DeliveryInfo``.

    ``clock`` returns the current aware datetime; it defaults to
    ``datetime.now`` in *time_zone*.
    """

    def __init__(
        self,
        time_zone: str = "Europe/Copenhagen",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._tz = ZoneInfo(time_zone)
        self._clock = clock or (lambda: datetime.now(self._tz))

    def resolve(
        self,
        date_type: DeliveryDateType,
        time_slot: DeliveryTimeSlot,
        custom_date: Union[date, str, None] = None,
        manual: bool = False,
    ) -> DeliveryInfo:
        """Resolve the selection into a delivery block.

        *manual* is the provenance tag: ``True`` from the standalone
        delivery-edit path, ``False`` during a status transition.

        Raises:
            MissingDeliveryDate: ``custom`` without a date.
            InvalidDeliveryDate: the custom date is not ``YYYY-MM-DD``, optionally
                followed by an ISO time.
        """
        date_type = DeliveryDateType(date_type)
        time_slot = DeliveryTimeSlot(time_slot)
        delivery_day = self.resolve_date(date_type, custom_date)

        expected = datetime.combine(delivery_day, time.min, tzinfo=self._tz)
        (start_h, start_m), (end_h, end_m) = time_slot.bounds
        estimated = EstimatedRange(
            earliest=datetime.combine(
                delivery_day, time(start_h, start_m), tzinfo=self._tz
            ),
            latest=datetime.combine(delivery_day, time(end_h, end_m), tzinfo=self._tz),
        )

        logger.debug(
            "delivery.resolved",
            date_type=date_type.value,
            time_slot=time_slot.value,
            expected_delivery=expected.isoformat(),
            manual=manual,
        )
        return DeliveryInfo(
            expected_delivery=expected,
            delivered_at=None,
            delivery_time_slot=time_slot,
            delivery_date_type=date_type,
            is_manually_set=manual,
            estimated_range=estimated,
        )

    def resolve_selection(
        self, selection: DeliverySelection, manual: bool = False
    ) -> DeliveryInfo:
        return self.resolve(
            selection.date_type,
            selection.time_slot,
            custom_date=selection.custom_date,
            manual=manual,
        )

    def resolve_date(
        self,
        date_type: DeliveryDateType,
        custom_date: Union[date, str, None] = None,
    ) -> date:
        """Return the calendar day a selector points at."""
        if date_type is DeliveryDateType.CUSTOM:
            return self._parse_custom_date(custom_date)
        today = self._clock().astimezone(self._tz).date()
        return today + timedelta(days=DELIVERY_DAY_OFFSETS[date_type])

    @staticmethod
    def _parse_custom_date(custom_date: Union[date, str, None]) -> date:
        if isinstance(custom_date, datetime):
            return custom_date.date()
        if isinstance(custom_date, date):
            return custom_date
        if custom_date is None or not custom_date.strip():
            raise MissingDeliveryDate("Select a delivery date.")
        try:
            return datetime.fromisoformat(custom_date.strip()).date()
        except ValueError as exc:
            raise InvalidDeliveryDate(
                f"Invalid delivery date {custom_date!r}; expected YYYY-MM-DD."
            ) from exc

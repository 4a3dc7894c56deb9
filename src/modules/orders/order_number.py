"""Order number parsing.

Order numbers are issued by the backend as
``YYYYMMDD-HHMMSS-<customerId>-<sequence>``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ParsedOrderNumber:
    full_order_number: str
    sequence_number: str
    formatted_date: str
    formatted_time: str
    customer_id: str


def parse_order_number(order_number: str) -> ParsedOrderNumber:
    """Split an order number into display parts.

    Anything not in the expected shape is returned whole as the sequence
    number, with ``N/A`` date and time.
    """
    parts = order_number.split("-")
    if len(parts) >= 4 and len(parts[0]) == 8 and len(parts[1]) == 6:
        date_part, time_part = parts[0], parts[1]
        return ParsedOrderNumber(
            full_order_number=order_number,
            sequence_number=f"#{parts[-1]}",
            formatted_date=f"{date_part[6:8]}/{date_part[4:6]}/{date_part[0:4]}",
            formatted_time=f"{time_part[0:2]}:{time_part[2:4]}:{time_part[4:6]}",
            customer_id="-".join(parts[2:-1]),
        )
    return ParsedOrderNumber(
        full_order_number=order_number,
        sequence_number=order_number,
        formatted_date="N/A",
        formatted_time="N/A",
        customer_id="",
    )

"""
Order exports for the back office.
"""
from __future__ import annotations

import csv
from typing import Iterable, TextIO

from storefront.domain.order import Order


EXPORT_COLUMNS = (
    "id",
    "customer_name",
    "customer_phone",
    "status",
    "acceptance_status",
    "assembler_id",
    "total_amount",
    "created_at",
)


def export_orders_csv(orders: Iterable[Order], stream: TextIO) -> int:
    """Write orders as CSV to ``stream``. Returns the number of rows written."""
    writer = csv.writer(stream)
    writer.writerow(EXPORT_COLUMNS)
    count = 0
    for order in orders:
        writer.writerow([
            order.id,
            order.customer_name,
            order.customer_phone,
            order.status.value,
            order.acceptance_status.value,
            order.assembler_id if order.assembler_id is not None else "",
            f"{order.total_amount:.2f}",
            order.created_at.isoformat() if order.created_at else "",
        ])
        count += 1
    return count

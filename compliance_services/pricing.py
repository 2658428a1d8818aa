"""
compliance_services.pricing -- Accept the system price on an order.

Copies each line's stamped system price into its rate and clears the
stamp, then saves the order.
"""

from __future__ import annotations

from dataclasses import replace

from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import SalesOrder
from compliance_services.orders import OrderRepository

logger = get_logger("services.pricing")


def accept_system_price(order: SalesOrder) -> SalesOrder:
    """Lines with a system price take it as their rate."""
    lines = tuple(
        replace(line, rate=line.system_price, system_price=None)
        if line.system_price is not None
        else line
        for line in order.lines
    )
    return replace(order, lines=lines)


class PricingService:
    def __init__(self, orders: OrderRepository):
        self.orders = orders

    def accept_system_price(self, order_id: str) -> SalesOrder:
        order = self.orders.get(order_id)
        updated = accept_system_price(order)
        repriced = sum(
            1 for before, after in zip(order.lines, updated.lines) if before != after
        )
        logger.info(
            "system_price_accepted",
            extra={"order_id": order_id, "repriced_lines": repriced},
        )
        return self.orders.save(updated)

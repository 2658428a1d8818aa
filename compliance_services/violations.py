"""
compliance_services.violations -- Restriction violation log.

Responsibility:
    Persist one ViolationLogModel row per non-override verdict produced by
    an evaluation, for compliance reporting.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import RestrictionVerdict, SalesOrder
from compliance_modules.orders.orm import ViolationLogModel

logger = get_logger("services.violations")


class ViolationLogService:
    """Append-only writer for restriction violations."""

    def __init__(self, session: Session):
        self.session = session

    def record(
        self,
        order: SalesOrder,
        verdicts: Sequence[RestrictionVerdict],
    ) -> list[ViolationLogModel]:
        """Log every verdict that is not an override.  Returns the new rows."""
        rows = [
            ViolationLogModel(
                order_id=order.order_id,
                customer_id=order.customer_id,
                item_id=verdict.item_id,
                category=verdict.category.value,
                quantity=verdict.quantity,
                po_number=order.po_number,
                order_date=order.order_date,
                reason=verdict.reason,
            )
            for verdict in verdicts
            if not verdict.override
        ]
        if not rows:
            return []

        self.session.add_all(rows)
        self.session.flush()

        logger.info(
            "restriction_violations_logged",
            extra={
                "order_id": order.order_id,
                "customer_id": order.customer_id,
                "violation_count": len(rows),
            },
        )
        return rows

    def for_customer(self, customer_id: str) -> list[ViolationLogModel]:
        return list(
            self.session.scalars(
                select(ViolationLogModel)
                .where(ViolationLogModel.customer_id == customer_id)
                .order_by(ViolationLogModel.created_at)
            )
        )

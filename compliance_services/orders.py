"""
compliance_services.orders -- Sales order persistence and duplicate-PO search.

Responsibility:
    Load and save sales orders as frozen ``SalesOrder`` values, and find
    other orders of the same customer carrying the same PO number.

Architecture position:
    Services -- data-access boundary over SalesOrderModel.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from compliance_kernel.exceptions import OrderNotFoundError
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import SalesOrder
from compliance_modules.orders.orm import SalesOrderLineModel, SalesOrderModel

logger = get_logger("services.orders")


class OrderRepository:
    """Reads and writes sales orders."""

    def __init__(self, session: Session):
        self.session = session

    def _load(self, order_id: str) -> SalesOrderModel | None:
        return self.session.scalars(
            select(SalesOrderModel).where(SalesOrderModel.order_id == order_id)
        ).one_or_none()

    def get(self, order_id: str) -> SalesOrder:
        model = self._load(order_id)
        if model is None:
            raise OrderNotFoundError(order_id)
        return model.to_dto()

    def save(self, order: SalesOrder) -> SalesOrder:
        """
        Insert or replace an order and its lines.

        Lines are replaced wholesale so removed lines disappear and the
        surviving lines take their new indexes.
        """
        model = self._load(order.order_id) if order.order_id else None
        fresh = SalesOrderModel.from_dto(order)

        if model is None:
            self.session.add(fresh)
            model = fresh
        else:
            for column in SalesOrderModel.__table__.columns.keys():
                if column in ("id", "created_at", "updated_at"):
                    continue
                setattr(model, column, getattr(fresh, column))
            model.lines.clear()
            self.session.flush()
            model.lines.extend(SalesOrderLineModel.from_dto(line) for line in order.lines)

        self.session.flush()
        logger.info(
            "sales_order_saved",
            extra={
                "order_id": order.order_id,
                "status": order.status.value,
                "line_count": len(order.lines),
            },
        )
        return model.to_dto()

    def find_duplicate_po(self, order: SalesOrder) -> bool:
        """
        Whether another order of this customer carries the same PO number.

        When the order has a ship-to street or zip, the other order must
        share them.  Orders without a PO number are never duplicates.
        """
        if not order.po_number:
            return False

        address = order.shipping_address
        stmt = (
            select(SalesOrderModel.order_id)
            .where(SalesOrderModel.customer_id == order.customer_id)
            .where(SalesOrderModel.po_number == order.po_number)
        )
        if order.order_id:
            stmt = stmt.where(SalesOrderModel.order_id != order.order_id)
        if address.address1:
            stmt = stmt.where(SalesOrderModel.ship_address1 == address.address1)
        if address.address2:
            stmt = stmt.where(SalesOrderModel.ship_address2 == address.address2)
        if address.zip_code:
            stmt = stmt.where(SalesOrderModel.ship_zip == address.zip_code)

        existing = self.session.scalars(stmt.limit(1)).first()
        if existing is not None:
            logger.info(
                "duplicate_po_found",
                extra={
                    "order_id": order.order_id,
                    "po_number": order.po_number,
                    "existing_order_id": existing,
                },
            )
        return existing is not None

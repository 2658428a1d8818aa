"""
compliance_services.fill_and_kill -- Close unfilled lines on invoicing.

Responsibility:
    When an invoice is created from a partially fulfilled sales order of a
    fill-and-kill customer, close every order line whose quantity differs
    from its fulfilled quantity.

Architecture position:
    Services -- runs after an invoice is created.  Reads InvoiceModel and
    the customer; writes through OrderRepository.

Invariants enforced:
    - Runs only for newly created invoices with a created-from order in
      PARTIALLY_FULFILLED status.
    - The invoice's override flag and a customer without fill & kill both
      leave the order untouched.
"""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy import select
from sqlalchemy.orm import Session

from compliance_kernel.exceptions import DataError
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import OrderStatus, SalesOrder, SubmitEvent
from compliance_modules.orders.orm import InvoiceModel
from compliance_services.catalog import RestrictionCatalog
from compliance_services.orders import OrderRepository

logger = get_logger("services.fill_and_kill")


def close_remaining_lines(order: SalesOrder) -> tuple[SalesOrder, tuple[str, ...]]:
    """Close lines not fully fulfilled.  Returns the order and closed keys."""
    closed: list[str] = []
    lines = []
    for line in order.lines:
        if line.quantity != line.quantity_fulfilled and not line.is_closed:
            line = replace(line, is_closed=True)
            closed.append(line.line_key)
        lines.append(line)
    return replace(order, lines=tuple(lines)), tuple(closed)


class FillAndKillService:
    """Closes the remaining lines of fill-and-kill orders when invoiced."""

    def __init__(
        self,
        session: Session,
        orders: OrderRepository | None = None,
        catalog: RestrictionCatalog | None = None,
    ):
        self.session = session
        self.orders = orders or OrderRepository(session)
        self.catalog = catalog or RestrictionCatalog(session)

    def on_invoice_submitted(self, invoice_id: str, event: SubmitEvent) -> tuple[str, ...]:
        """
        Apply fill & kill for a submitted invoice.

        Returns:
            Keys of the order lines that were closed; empty when the rule
            does not apply.
        """
        if event is not SubmitEvent.CREATE:
            return ()

        invoice = self.session.scalars(
            select(InvoiceModel).where(InvoiceModel.invoice_id == invoice_id)
        ).one_or_none()
        if invoice is None or not invoice.created_from_order_id:
            return ()

        try:
            order = self.orders.get(invoice.created_from_order_id)
        except DataError:
            logger.info(
                "fill_and_kill_source_not_order",
                extra={"invoice_id": invoice_id},
            )
            return ()

        if order.status is not OrderStatus.PARTIALLY_FULFILLED:
            return ()
        if invoice.override_fill_and_kill:
            return ()

        try:
            profile = self.catalog.get_customer_profile(invoice.customer_id)
        except DataError:
            logger.warning(
                "fill_and_kill_customer_missing",
                extra={"invoice_id": invoice_id, "customer_id": invoice.customer_id},
            )
            return ()
        if not profile.fill_and_kill:
            return ()

        updated, closed = close_remaining_lines(order)
        if closed:
            self.orders.save(updated)

        logger.info(
            "fill_and_kill_applied",
            extra={
                "invoice_id": invoice_id,
                "order_id": order.order_id,
                "closed_lines": len(closed),
            },
        )
        return closed

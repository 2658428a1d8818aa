"""
compliance_services.credit -- Customer credit exposure from the store.

Responsibility:
    Sum a customer's open invoice balances and, when enabled, the totals of
    their other orders pending fulfillment, then hand the figures to the
    pure credit engine.

Architecture position:
    Services -- data-access boundary over compliance_engines.credit.

Failure modes:
    - InvalidCustomerIdError when the customer id is not numeric.
    - CustomerNotFoundError when no customer has that id.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from compliance_config.schema import CompliancePreferences
from compliance_engines.credit import compute_credit_status
from compliance_kernel.exceptions import InvalidCustomerIdError
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import CreditStatus, OrderStatus
from compliance_modules.orders.orm import InvoiceModel, SalesOrderModel
from compliance_services.catalog import RestrictionCatalog

logger = get_logger("services.credit")

_ZERO = Decimal("0")


class CreditExposureService:
    """
    Computes a customer's credit status for one evaluation.

    Contract:
        Receives Session and preferences via constructor injection.
        Results are computed fresh on every call; nothing is cached.
    """

    def __init__(
        self,
        session: Session,
        preferences: CompliancePreferences,
        catalog: RestrictionCatalog | None = None,
    ):
        self.session = session
        self.preferences = preferences
        self.catalog = catalog or RestrictionCatalog(session, preferences.search_page_size)

    def open_invoice_total(self, customer_id: str) -> Decimal:
        """Sum of the remaining amount of the customer's open invoices."""
        total = self.session.scalar(
            select(func.coalesce(func.sum(InvoiceModel.amount_remaining), 0))
            .where(InvoiceModel.customer_id == customer_id)
            .where(InvoiceModel.is_open.is_(True))
        )
        return Decimal(str(total or 0))

    def pending_order_total(
        self,
        customer_id: str,
        exclude_order_id: str | None = None,
    ) -> Decimal:
        """Sum of the totals of the customer's orders pending fulfillment."""
        stmt = (
            select(func.coalesce(func.sum(SalesOrderModel.total), 0))
            .where(SalesOrderModel.customer_id == customer_id)
            .where(SalesOrderModel.status == OrderStatus.PENDING_FULFILLMENT.value)
        )
        if exclude_order_id is not None:
            stmt = stmt.where(SalesOrderModel.order_id != exclude_order_id)
        total = self.session.scalar(stmt)
        return Decimal(str(total or 0))

    def credit_status(
        self,
        customer_id: str,
        exclude_order_id: str | None = None,
    ) -> CreditStatus:
        """
        Credit status of ``customer_id`` before counting the order itself.

        Raises:
            InvalidCustomerIdError: ``customer_id`` is not a numeric id.
            CustomerNotFoundError: no such customer.
        """
        if not isinstance(customer_id, str) or not customer_id.isdigit():
            raise InvalidCustomerIdError(customer_id)

        profile = self.catalog.get_customer_profile(customer_id)
        include_pending = self.preferences.include_pending_orders_in_credit

        open_invoices = self.open_invoice_total(customer_id)
        pending = (
            self.pending_order_total(customer_id, exclude_order_id)
            if include_pending
            else _ZERO
        )

        status = compute_credit_status(
            profile,
            open_invoices,
            pending_order_total=pending,
            include_pending=include_pending,
        )

        logger.info(
            "credit_status_computed",
            extra={
                "customer_id": customer_id,
                "credit_hold_override": profile.credit_hold_override.value,
                "valid": status.valid,
                "remaining_credit": status.remaining_credit,
            },
        )
        return status

"""
Module: compliance_engines.credit
Responsibility:
    Compute a customer's credit position for an order evaluation and
    apply the order-level adjustments (self-inclusive check on create,
    manual override).

Architecture position:
    Engines -- pure rule layer, zero I/O.  Totals are summed by
    ``compliance_services.credit``.

Invariants enforced:
    - OFF: never valid, message "Customer is On Hold".
    - ON: always valid; no remaining credit is computed.
    - AUTO: remaining = limit - open invoices (- pending orders when
      enabled), rounded half-up to cents; valid iff remaining > 0.
    - On create, an order total above the remaining credit invalidates.
    - The manual override always wins and forces validity.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal

from compliance_engines.tracer import traced_engine
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import (
    CreditHoldOverride,
    CreditStatus,
    CustomerProfile,
    OrderStatus,
)

logger = get_logger("engines.credit")

ON_HOLD_MESSAGE = "Customer is On Hold"
_CENTS = Decimal("0.01")


@traced_engine(
    "credit", "1.0",
    fingerprint_fields=("profile", "open_invoice_total", "pending_order_total", "include_pending"),
)
def compute_credit_status(
    profile: CustomerProfile,
    open_invoice_total: Decimal,
    pending_order_total: Decimal = Decimal("0"),
    include_pending: bool = False,
) -> CreditStatus:
    """Credit position of ``profile`` before looking at the order itself."""
    if profile.credit_hold_override is CreditHoldOverride.OFF:
        return CreditStatus(valid=False, message=ON_HOLD_MESSAGE)

    if profile.credit_hold_override is CreditHoldOverride.ON:
        return CreditStatus(valid=True)

    exposure = open_invoice_total
    if include_pending:
        exposure += pending_order_total

    remaining = (profile.credit_limit - exposure).quantize(_CENTS, rounding=ROUND_HALF_UP)

    logger.debug(
        "credit_remaining_computed",
        extra={
            "customer_id": profile.customer_id,
            "credit_limit": str(profile.credit_limit),
            "exposure": str(exposure),
            "remaining_credit": str(remaining),
        },
    )
    return CreditStatus(valid=remaining > 0, remaining_credit=remaining)


def apply_order_checks(
    status: CreditStatus,
    *,
    is_create: bool,
    order_total: Decimal,
    manual_override: bool,
) -> CreditStatus:
    """Adjust a customer's credit status for the order being saved."""
    if (
        is_create
        and status.valid
        and status.remaining_credit is not None
        and order_total > status.remaining_credit
    ):
        status = replace(status, valid=False)

    if manual_override:
        status = replace(status, valid=True)

    return status


def order_status_for(status: CreditStatus) -> OrderStatus:
    """Workflow status implied by a credit status."""
    return OrderStatus.PENDING_FULFILLMENT if status.valid else OrderStatus.PENDING_APPROVAL


def invalid_reason_for(status: CreditStatus) -> str:
    """Invalid-order reason implied by a credit status ('' when valid)."""
    return "" if status.valid else status.reason_text

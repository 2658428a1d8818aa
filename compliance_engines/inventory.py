"""
Module: compliance_engines.inventory
Responsibility:
    Item lifecycle rules: forbidden lifecycles block a line outright;
    discontinued and phase-out items sell only up to the stock that can
    still be sourced at the line's location.

Architecture position:
    Engines -- pure rule layer, zero I/O.  Balances are loaded by
    ``compliance_services.catalog``.

Invariants enforced:
    - Cap = available at the line's location + on order across all
      locations - (backordered at the line's location - quantity this
      order already held for the item before the edit).
    - A cap <= 0 removes the line; a positive cap clamps it.
    - Quantity already committed to the line does not count against
      the cap.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal

from compliance_engines.tracer import traced_engine
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import (
    ItemLifecycle,
    LocationInventory,
    OrderLine,
    Remediation,
    RestrictionVerdict,
    VerdictCategory,
)

logger = get_logger("engines.inventory")

_ZERO = Decimal("0")

FORBIDDEN_LIFECYCLE_REASON = "Invalid Item Lifecycle"


def max_allowed_quantity(
    location: str,
    balances: Sequence[LocationInventory],
    prior_quantity: Decimal = _ZERO,
) -> Decimal:
    """
    Most units of an item the line at ``location`` may still order.

    Args:
        location: The order line's fulfillment location.
        balances: The item's balances across every location.
        prior_quantity: Quantity of the item on this order before the edit;
            it is already part of the location's backorder.
    """
    on_order = sum((b.on_order for b in balances), _ZERO)
    available = _ZERO
    backordered = _ZERO
    for balance in balances:
        if balance.location == location:
            available = balance.available
            backordered = balance.backordered
    return available + on_order - (backordered - prior_quantity)


def _cap_reason(lifecycle: ItemLifecycle, cap: Decimal) -> str:
    if cap <= 0:
        return f"No Stock available for {lifecycle.label} Item"
    return f"Insufficient quantity for {lifecycle.label} Item"


def lifecycle_verdicts(lines: Sequence[OrderLine]) -> tuple[RestrictionVerdict, ...]:
    """Hard verdicts for lines whose item is inactive or still in development."""
    return tuple(
        RestrictionVerdict(
            line_key=line.line_key,
            line_index=line.line_index,
            item_id=line.item_id,
            item_name=line.item_name,
            category=VerdictCategory.LIFECYCLE,
            reason=FORBIDDEN_LIFECYCLE_REASON,
            remediation=Remediation.REMOVE_LINE,
            quantity=line.quantity,
        )
        for line in lines
        if line.lifecycle.is_forbidden
    )


@traced_engine("inventory", "1.0", fingerprint_fields=("lines", "balances", "prior_quantities"))
def quantity_cap_verdicts(
    lines: Sequence[OrderLine],
    balances: Mapping[str, Sequence[LocationInventory]],
    prior_quantities: Mapping[str, Decimal] | None = None,
) -> tuple[RestrictionVerdict, ...]:
    """
    Verdicts for discontinued / phase-out lines that exceed the stock cap.

    Args:
        lines: Order lines after item enrichment.
        balances: Item id -> balances across locations.
        prior_quantities: Item id -> quantity on the order before the edit.
    """
    prior_quantities = prior_quantities or {}
    verdicts = []
    seen_items: set[str] = set()

    for line in lines:
        if not line.lifecycle.is_capped or not line.location:
            continue
        if line.item_id in seen_items or line.item_id not in balances:
            continue
        seen_items.add(line.item_id)

        cap = max_allowed_quantity(
            line.location,
            balances[line.item_id],
            prior_quantities.get(line.item_id, _ZERO),
        )
        if line.quantity_requested <= cap:
            continue

        logger.info(
            "quantity_cap_exceeded",
            extra={
                "line_key": line.line_key,
                "item_id": line.item_id,
                "lifecycle": line.lifecycle.value,
                "requested": str(line.quantity_requested),
                "max_allowed": str(cap),
            },
        )
        verdicts.append(
            RestrictionVerdict(
                line_key=line.line_key,
                line_index=line.line_index,
                item_id=line.item_id,
                item_name=line.item_name,
                category=VerdictCategory.LIFECYCLE,
                reason=_cap_reason(line.lifecycle, cap),
                remediation=Remediation.CLAMP_QUANTITY if cap > 0 else Remediation.REMOVE_LINE,
                quantity=line.quantity,
                max_allowed_quantity=cap + line.quantity_committed if cap > 0 else cap,
            )
        )
    return tuple(verdicts)

"""
Module: compliance_engines.mutation
Responsibility:
    Apply classified restrictions to a sales order: build the invalid
    order reason, clamp and re-price lines, remove hard-blocked lines and
    hold the order for approval when needed.

Architecture position:
    Engines -- pure rule layer, zero I/O.  Returns a new ``SalesOrder``;
    the caller decides whether to persist it.

Invariants enforced:
    - Hard-blocked lines are matched by item; every line of a blocked item
      is removed.  Removal runs in descending line-index order.
    - Quantity clamps are matched by item; price stamps by line index.
    - Surviving lines keep their field values and relative order and are
      re-indexed from zero.
    - Removing every line raises ``AllLinesBlockedError``; the order is not
      returned.
    - Status becomes PENDING_APPROVAL on any soft, price, cert, GPL,
      duplicate-PO or invalid-address issue; otherwise it is left as the
      credit check set it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from compliance_engines.classifier import ClassifiedRestrictions
from compliance_engines.tracer import traced_engine
from compliance_kernel.exceptions import AllLinesBlockedError
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import (
    AddressValidation,
    OrderLine,
    OrderStatus,
    SalesOrder,
)

logger = get_logger("engines.mutation")

DUPLICATE_PO_REASON = "Possible Duplicate PO - Confirmation Required\n"


@dataclass(frozen=True)
class MutationResult:
    """The mutated order and a summary of what changed."""

    order: SalesOrder
    removed_line_keys: tuple[str, ...]
    clamped_line_keys: tuple[str, ...]
    repriced_line_keys: tuple[str, ...]
    requires_approval: bool


def build_reason(
    classified: ClassifiedRestrictions,
    is_duplicate: bool,
    address: AddressValidation,
) -> str:
    """The invalid order reason text, one issue per line."""
    parts: list[str] = []
    for verdict in classified.soft:
        parts.append(f"{verdict.item_name} - {verdict.reason}\n")
    for verdict in classified.adjust:
        parts.append(
            f"{verdict.item_name} - {verdict.reason}, Quantity: {verdict.quantity}"
            f" reduced to: {verdict.max_allowed_quantity}\n"
        )
    for verdict in classified.price + classified.cert + classified.gpl:
        parts.append(f"{verdict.item_name} - {verdict.reason}\n")
    if is_duplicate:
        parts.append(DUPLICATE_PO_REASON)
    if not address.is_valid:
        parts.append(address.reason)
    return "".join(parts)


@traced_engine("mutation", "1.0", fingerprint_fields=("order", "classified", "is_duplicate"))
def apply_restrictions(
    order: SalesOrder,
    classified: ClassifiedRestrictions,
    *,
    is_duplicate: bool = False,
    address: AddressValidation = AddressValidation(is_valid=True),
) -> MutationResult:
    """
    Apply classified restrictions to ``order``.

    Raises:
        AllLinesBlockedError: every line on the order is hard-blocked.
    """
    blocked_items = {v.item_id for v in classified.hard}

    clamps: dict[str, Decimal] = {}
    for verdict in classified.adjust:
        clamps.setdefault(verdict.item_id, verdict.max_allowed_quantity)

    prices: dict[int, Decimal] = {}
    for verdict in classified.price:
        prices.setdefault(verdict.line_index, verdict.system_price)

    lines: list[OrderLine] = []
    clamped: list[str] = []
    repriced: list[str] = []
    to_remove: list[int] = []

    for position, line in enumerate(order.lines):
        if line.item_id in clamps:
            line = replace(line, quantity=clamps[line.item_id])
            clamped.append(line.line_key)
        if line.line_index in prices:
            line = replace(line, system_price=prices[line.line_index])
            repriced.append(line.line_key)
        if line.item_id in blocked_items:
            to_remove.append(position)
        lines.append(line)

    if order.lines and len(to_remove) == len(order.lines):
        logger.warning(
            "order_all_lines_blocked",
            extra={
                "order_id": order.order_id,
                "line_count": len(order.lines),
            },
        )
        raise AllLinesBlockedError(tuple(line.line_key for line in order.lines))

    removed: list[str] = []
    for position in sorted(to_remove, reverse=True):
        removed.append(lines.pop(position).line_key)
    removed.reverse()

    lines = [replace(line, line_index=index) for index, line in enumerate(lines)]

    requires_approval = (
        classified.requires_approval or is_duplicate or not address.is_valid
    )
    status = OrderStatus.PENDING_APPROVAL if requires_approval else order.status

    mutated = replace(
        order,
        lines=tuple(lines),
        status=status,
        invalid_order_reason=build_reason(classified, is_duplicate, address),
    )

    logger.info(
        "order_restrictions_applied",
        extra={
            "order_id": order.order_id,
            "removed": len(removed),
            "clamped": len(clamped),
            "repriced": len(repriced),
            "status": status.value,
        },
    )

    return MutationResult(
        order=mutated,
        removed_line_keys=tuple(removed),
        clamped_line_keys=tuple(clamped),
        repriced_line_keys=tuple(repriced),
        requires_approval=requires_approval,
    )
